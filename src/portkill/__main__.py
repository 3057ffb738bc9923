import sys

from portkill.cli import main

sys.exit(main())
