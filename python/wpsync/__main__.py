"""Allow `python -m wpsync`."""

import sys

from wpsync.cli import main

sys.exit(main())
