"""CLI entry point for mdrender.

Allows running the tool from a checkout with ``python . {command}``.
Commands are implemented in ``mdrender.cli``, which also loads ``.env``.
"""

import sys

from mdrender.cli import main

if __name__ == "__main__":
    sys.exit(main())
