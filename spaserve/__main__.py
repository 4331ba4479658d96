"""
Serve the single-page application configured via environment variables:

    PORT=3000 SPA_ROOT=./dist python -m spaserve
"""

import sys

from ._run import main


if __name__ == "__main__":
    sys.exit(main())
