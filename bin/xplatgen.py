#!/usr/bin/env python3
"""
Run xplatgen from a source checkout without installing it.

Usage:
    python bin/xplatgen.py generate api.yaml --output generated/
"""

import sys
from pathlib import Path

# Add parent directory to path so the xplatgen package can be found
sys.path.insert(0, str(Path(__file__).parent.parent))

from xplatgen.cli import main

if __name__ == "__main__":
    sys.exit(main())
