"""MaskFS Server - request pipeline and HTTP transport.

- RequestPipeline: method check, path sandboxing, resolution, masking, dispatch
- MaskFSServer: threaded HTTP server with graceful drain
"""

from .pipeline import (
    BadRequestError,
    InternalServerError,
    MethodNotAllowedError,
    NotFoundError,
    RequestError,
    RequestPipeline,
    Response,
    decode_path,
    normalize_path,
)
from .transport import MaskFSRequestHandler, MaskFSServer, parse_range, serve

__all__ = [
    # Pipeline
    "RequestPipeline",
    "Response",
    "RequestError",
    "BadRequestError",
    "NotFoundError",
    "MethodNotAllowedError",
    "InternalServerError",
    "decode_path",
    "normalize_path",
    # Transport
    "MaskFSServer",
    "MaskFSRequestHandler",
    "parse_range",
    "serve",
]
