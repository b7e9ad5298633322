"""LMC Debugger Main Entry Point

Command-line interface for the LMC debugger.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from lmc_vm.memory import DEFAULT_CELL_WIDTH, DEFAULT_MEMORY_SIZE
from lmc_vm.registers import DEFAULT_ACCUMULATOR_WIDTH

from .interactive_debugger import start_interactive_debugger


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the debugger."""
    parser = argparse.ArgumentParser(
        description="LMC Debugger - Step through LMC program images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  lmc-debug                         # Start with an empty machine
  lmc-debug program.lmc             # Start with a program loaded
  lmc-debug --width 16 program.lmc  # 16-bit accumulator
"""
    )

    parser.add_argument(
        "program",
        nargs="?",
        type=Path,
        help="Program image to debug"
    )

    parser.add_argument("--memory-size", type=int, default=DEFAULT_MEMORY_SIZE, help="Memory cells (1-999)")
    parser.add_argument("--width", type=int, default=DEFAULT_ACCUMULATOR_WIDTH, help="Accumulator bits (8, 16, 32, 64)")
    parser.add_argument("--cell-width", type=int, default=DEFAULT_CELL_WIDTH, help="Memory cell bits (16, 32, 64)")

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="LMC Debugger v0.1.0"
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    config = {
        'memory_size': args.memory_size,
        'accumulator_width': args.width,
        'cell_width': args.cell_width,
    }

    try:
        program_file = str(args.program) if args.program else None
        start_interactive_debugger(program_file, config)
        return 0

    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
