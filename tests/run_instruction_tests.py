"""
Test runner for all CPU instruction tests.

Runs instruction tests in dependency order:
1. Memory instructions (LDA, STA, LDR) - needed to set up every other test
2. Arithmetic instructions (ADD, SUB)
3. Bitwise instructions (BWN, BWA, BWO, BWX, BSL, BSR)
4. I/O instructions (INP, OUT)
5. Branch instructions (BRA, BRZ, BRP)
6. HLT and faults
"""

import unittest
import sys
import os

# Add the tests directory to Python path
sys.path.insert(0, os.path.dirname(__file__))

from test_memory_instructions import TestMemoryInstructions
from test_arithmetic_instructions import TestArithmeticInstructions
from test_bitwise_instructions import TestBitwiseInstructions
from test_io_instructions import TestIOInstructions
from test_jump_instructions import TestJumpInstructions
from test_halt_instruction import TestFaults, TestHaltInstruction

TEST_GROUPS = {
    'memory': [TestMemoryInstructions],
    'arithmetic': [TestArithmeticInstructions],
    'bitwise': [TestBitwiseInstructions],
    'io': [TestIOInstructions],
    'jump': [TestJumpInstructions],
    'halt': [TestHaltInstruction, TestFaults],
}


def create_test_suite(groups=None):
    """Create test suite in dependency order."""
    suite = unittest.TestSuite()
    loader = unittest.TestLoader()

    for name in groups or TEST_GROUPS:
        for test_class in TEST_GROUPS[name]:
            suite.addTests(loader.loadTestsFromTestCase(test_class))

    return suite


def run_instruction_tests(verbosity=2):
    """Run all instruction tests with a summary."""
    print("=" * 70)
    print("LMC CPU INSTRUCTION TEST SUITE")
    print("=" * 70)
    print()

    suite = create_test_suite()
    runner = unittest.TextTestRunner(verbosity=verbosity, stream=sys.stdout)

    print(f"Running {suite.countTestCases()} instruction tests...")
    print()

    result = runner.run(suite)

    print()
    print("=" * 70)
    print("TEST SUMMARY")
    print("=" * 70)
    print(f"Tests run: {result.testsRun}")
    print(f"Failures: {len(result.failures)}")
    print(f"Errors: {len(result.errors)}")

    for label, problems in (("FAILURES", result.failures), ("ERRORS", result.errors)):
        if problems:
            print(f"\n{label} ({len(problems)}):")
            for test, _ in problems:
                print(f"  - {test}")

    success = result.wasSuccessful()
    print(f"\nOVERALL: {'PASS' if success else 'FAIL'}")
    print("=" * 70)

    return success


def run_single_instruction_test(group, verbosity=2):
    """Run tests for a single instruction group."""
    if group.lower() not in TEST_GROUPS:
        print(f"Unknown instruction test: {group}")
        print(f"Available tests: {', '.join(TEST_GROUPS)}")
        return False

    suite = create_test_suite([group.lower()])
    runner = unittest.TextTestRunner(verbosity=verbosity)

    print(f"Running {group.upper()} instruction tests...")
    return runner.run(suite).wasSuccessful()


if __name__ == '__main__':
    import argparse

    parser = argparse.ArgumentParser(description='Run LMC CPU instruction tests')
    parser.add_argument('--instruction', '-i', type=str,
                        help=f"Run one group ({', '.join(TEST_GROUPS)})")
    parser.add_argument('--quiet', '-q', action='store_true', help='Minimal output')

    args = parser.parse_args()
    verbosity = 0 if args.quiet else 2

    if args.instruction:
        success = run_single_instruction_test(args.instruction, verbosity)
    else:
        success = run_instruction_tests(verbosity)

    sys.exit(0 if success else 1)
