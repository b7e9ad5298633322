#!/usr/bin/env python3
"""LMC Virtual Machine Runner Script

This script properly sets up the Python path and runs a program image headless.

Usage:
    python lmc_run.py <image> [--input N ...] [--max-steps N] [--width BITS] [--verbose]
"""

import sys
from pathlib import Path

# Add src to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root / 'src'))

# Now import and run the VM
from lmc_vm.virtual_machine import main

if __name__ == '__main__':
    sys.exit(main())
