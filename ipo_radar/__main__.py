import sys

from ipo_radar.cli import main

sys.exit(main())
