"""Entry point for ``python -m docvault``."""

import sys

from docvault.cli import main

sys.exit(main())
