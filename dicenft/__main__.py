"""Allow ``python -m dicenft``."""

import sys

from dicenft.cli import main

sys.exit(main())
