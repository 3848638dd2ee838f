import sys

from batchqr.cli import main

sys.exit(main())
