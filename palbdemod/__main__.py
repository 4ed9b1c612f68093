import sys

from palbdemod.cli import main

sys.exit(main())
