"""CLI entry point for llamaterminal."""

import sys

from llamaterminal.cli import main

if __name__ == "__main__":
    sys.exit(main())
