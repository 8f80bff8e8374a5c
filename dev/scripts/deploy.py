#!/usr/bin/env python3
"""sitedeploy - Entry Point."""
import sys

# Add the scripts directory to path for the sitedeploy package
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent))

from sitedeploy.cli import main

if __name__ == "__main__":
    sys.exit(main())
