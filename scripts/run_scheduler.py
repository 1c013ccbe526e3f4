#!/usr/bin/env python3
"""Run the database sync scheduler until interrupted with Ctrl+C."""

import sys
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from src.cli import scheduler_main


if __name__ == "__main__":
    scheduler_main()
