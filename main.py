"""ChartSQL - texto a SQL para charts."""

import sys

from adapters.inbound.cli import main

if __name__ == "__main__":
    sys.exit(main())
