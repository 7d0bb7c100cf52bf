"""Allow ``python -m tradedocs``."""

import sys

from tradedocs.cli import main

sys.exit(main())
