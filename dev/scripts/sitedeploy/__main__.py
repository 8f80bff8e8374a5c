"""
Entry point for running sitedeploy as a module: python -m sitedeploy
"""

import sys
from .cli import main

if __name__ == "__main__":
    sys.exit(main())
