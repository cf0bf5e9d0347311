"""Allow `python -m chronokv`."""

import sys

from chronokv.main import main

sys.exit(main())
