#!/usr/bin/env python3
"""
Entry point for the photo portfolio tools.
"""

from photofolio.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
