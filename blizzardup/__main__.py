import sys

from blizzardup.main import main

sys.exit(main())
