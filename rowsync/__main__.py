import sys

from rowsync.cli import main

sys.exit(main())
