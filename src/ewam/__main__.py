import sys

from ewam.cli import main

sys.exit(main())
