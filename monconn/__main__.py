"""
Entry point for running monconn as a module

Usage:
    python -m monconn
    python -m monconn --target --debug
"""

import sys

from .main import main

if __name__ == "__main__":
    sys.exit(main())
