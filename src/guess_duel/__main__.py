"""Allow ``python -m guess_duel``."""

import sys

from .cli import main

sys.exit(main())
