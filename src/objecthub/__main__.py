"""Allow running objecthub as ``python -m objecthub``."""

import sys

from objecthub.cli import main

sys.exit(main())
