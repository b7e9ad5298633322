"""
Tests for the interactive debugger commands.

Commands are driven through onecmd() with output captured from a rich
Console writing to a string buffer.
"""

import io
import os
import sys
import unittest
from contextlib import redirect_stderr

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from rich.console import Console

from lmc_debugger.interactive_debugger import LMCDebugger
from lmc_debugger.main import main
from lmc_vm.cpu import CPUState

PROGRAMS_DIR = os.path.join(os.path.dirname(__file__), '..', 'programs')
COUNTDOWN = os.path.join(PROGRAMS_DIR, 'countdown.lmc')


class TestDebugger(unittest.TestCase):
    """Test debugger commands against a captured console."""

    def setUp(self):
        self.buffer = io.StringIO()
        self.debugger = LMCDebugger(console=Console(file=self.buffer, width=120))

    def run_command(self, line):
        """Run one command and return what it printed."""
        self.buffer.seek(0)
        self.buffer.truncate()
        self.debugger.onecmd(line)
        return self.buffer.getvalue()

    def test_load_and_run(self):
        """Test loading a program and running it to completion."""
        output = self.run_command(f"load {COUNTDOWN}")
        self.assertIn("Program loaded", output)
        self.assertIn("ready", output)

        self.run_command("input 3")
        output = self.run_command("run")

        for value in ["3", "2", "1", "0"]:
            self.assertIn(f"OUTPUT: {value}", output)
        self.assertIn("halted", output)
        self.assertEqual(self.debugger.vm.state, CPUState.HALTED)

    def test_load_errors(self):
        """Test load reports missing files and arguments."""
        self.assertIn("specify a filename", self.run_command("load"))
        self.assertIn("Error loading program", self.run_command("load no_such_file.lmc"))
        self.assertIsNone(self.debugger.program_file)
        self.assertIn("No program loaded", self.run_command("reload"))

    def test_breakpoint_then_continue(self):
        """Test run stops at a breakpoint and continue resumes."""
        self.run_command(f"load {COUNTDOWN}")
        self.run_command("break 3")
        self.run_command("input 3")

        output = self.run_command("run")
        self.assertIn("OUTPUT: 3", output)
        self.assertIn("breakpoint", output)
        self.assertEqual(self.debugger.vm.get_registers().program_counter, 3)

        output = self.run_command("continue")
        self.assertIn("OUTPUT: 2", output)

    def test_breakpoint_commands(self):
        """Test listing, deleting and clearing breakpoints."""
        self.assertIn("No breakpoints set", self.run_command("break"))

        self.run_command("break 5")
        self.run_command("break 0x0A")
        self.assertEqual(self.debugger.vm.breakpoints, {5, 10})
        self.assertIn("010", self.run_command("break"))

        self.assertIn("Invalid address", self.run_command("break 5000"))

        self.run_command("delete 5")
        self.assertEqual(self.debugger.vm.breakpoints, {10})

        self.run_command("clear")
        self.assertEqual(self.debugger.vm.breakpoints, set())

    def test_step_and_input(self):
        """Test stepping into INP waits until input is queued."""
        self.run_command(f"load {COUNTDOWN}")

        output = self.run_command("step")
        self.assertIn("Waiting for input", output)

        self.run_command("input 0x2")
        output = self.run_command("step 2")
        self.assertIn("OUTPUT: 2", output)
        self.assertEqual(self.debugger.vm.get_registers().program_counter, 2)

        self.assertIn("Invalid step count", self.run_command("step many"))

    def test_output_command(self):
        """Test output reports when nothing is pending."""
        self.assertIn("No output", self.run_command("output"))

    def test_set_and_memory(self):
        """Test writing a cell and viewing it."""
        self.run_command("set 4 123")
        self.assertEqual(self.debugger.vm.read_memory(4), 123)

        output = self.run_command("memory 4 1")
        self.assertIn("004", output)
        self.assertIn("123", output)

        self.assertIn("Usage", self.run_command("set 4"))
        self.assertIn("Error", self.run_command("set 9999 1"))

    def test_program_listing(self):
        """Test the disassembly view marks the program counter and data cells."""
        self.run_command(f"load {COUNTDOWN}")
        self.run_command("break 1")

        output = self.run_command("program 0 8")
        self.assertIn("INP", output)
        self.assertIn("SUB 7", output)
        self.assertIn("DAT 1", output)
        self.assertIn(">>>", output)
        self.assertIn("*", output)

    def test_views_follow_snapshot(self):
        """Test memory and program views show the current data cells."""
        self.run_command(f"load {COUNTDOWN}")
        self.assertIn("*", self.run_command("memory 7 1"))

        self.run_command("set 7 902")
        self.assertNotIn("*", self.run_command("memory 7 1"))
        self.assertIn("OUT", self.run_command("program 7 1"))

        self.run_command("set 010 5")
        self.assertEqual(self.debugger.vm.read_memory(10), 5)

    def test_registers(self):
        """Test the register table shows the accumulator in hex."""
        self.debugger = LMCDebugger({'accumulator_width': 8}, console=Console(file=self.buffer, width=120))
        self.run_command(f"load {COUNTDOWN}")
        self.run_command("input -1")
        self.run_command("step")

        output = self.run_command("registers")
        self.assertIn("0xFF", output)
        self.assertIn("-N", output)

    def test_fault_status(self):
        """Test a fault appears in the status panel."""
        self.run_command("set 0 400")
        output = self.run_command("step")

        self.assertIn("InvalidOpcode", output)
        self.assertEqual(self.debugger.vm.state, CPUState.FAULTED)

    def test_reset(self):
        """Test reset clears the loaded program."""
        self.run_command(f"load {COUNTDOWN}")
        output = self.run_command("reset")

        self.assertIn("reset", output)
        self.assertIsNone(self.debugger.program_file)
        self.assertEqual(self.debugger.vm.memory_snapshot()[0], 0)

    def test_quit(self):
        """Test quit and exit end the command loop."""
        self.assertTrue(self.debugger.onecmd("quit"))
        self.assertTrue(self.debugger.onecmd("exit"))
        self.assertFalse(self.debugger.emptyline())

    def test_help(self):
        """Test the help panel lists commands."""
        output = self.run_command("help")
        self.assertIn("LMC Debugger Commands", output)
        self.assertIn("break [addr]", output)


class TestDebuggerMain(unittest.TestCase):
    """Test the debugger command line."""

    def test_invalid_configuration(self):
        """Test an unsupported width exits with 1."""
        stderr = io.StringIO()
        with redirect_stderr(stderr):
            code = main(['--width', '12'])

        self.assertEqual(code, 1)
        self.assertIn("Accumulator width", stderr.getvalue())


if __name__ == '__main__':
    unittest.main()
