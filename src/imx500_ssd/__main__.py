"""Entry point for ``python -m imx500_ssd``."""

import sys

from .main import main

if __name__ == "__main__":
    sys.exit(main())
