import sys

from authlink.cli import main

sys.exit(main())
