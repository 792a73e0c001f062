"""
Entry point for running the package as a module: python -m studyset
"""

import sys
from studyset.cli import main

if __name__ == "__main__":
    sys.exit(main())
