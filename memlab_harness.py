#!/usr/bin/env python3
"""memlab-harness CLI entry point.

This file allows running memlab-harness directly:
    python memlab_harness.py

For installed usage, use:
    memlab-harness
"""

import sys
from memlab_harness.cli import main

if __name__ == "__main__":
    sys.exit(main())
