"""CLI entry point: python main.py --data portfolio.json"""

import sys

from lotwatch.cli import main

if __name__ == "__main__":
    sys.exit(main())
