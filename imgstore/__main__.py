"""
Main entry point for running the package as a module.

Usage:
    python -m imgstore save photo.jpg --path /srv/images
    python -m imgstore path <id> --thumbnail sm --original
    python -m imgstore resize-all --clean
"""

import sys
from .cli import main

if __name__ == '__main__':
    sys.exit(main())
