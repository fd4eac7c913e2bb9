#!/usr/bin/env python3
"""
Main entry point for the LP hedging bot.

Usage:
    python main.py --config config/config.yaml
    python main.py --config config/config.yaml --dry-run-exposure 1250
    python main.py --once
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from hedgebot.cli import run

if __name__ == '__main__':
    run()
