import sys

from maskfs.cli import main

sys.exit(main())
