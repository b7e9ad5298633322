"""LMC Interactive Debugger

Provides a command-line interface for stepping through LMC program images.
"""

import cmd
from typing import Any, Dict, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from lmc_vm.cpu import CPUState
from lmc_vm.decoder import disassemble
from lmc_vm.image_loader import ImageLoaderError, parse_number
from lmc_vm.memory import MemoryException
from lmc_vm.virtual_machine import DEFAULT_RUN_BUDGET, VirtualMachine, VMException, create_vm


class LMCDebugger(cmd.Cmd):
    """Interactive debugger for LMC programs."""

    intro = """LMC Interactive Debugger v0.1.0
Type 'help' or '?' for commands.
"""
    prompt = "(lmc-debug) "

    def __init__(self, config: Optional[Dict[str, Any]] = None, console: Optional[Console] = None):
        super().__init__()
        self.config = config or {}
        self.vm: VirtualMachine = create_vm(self.config)
        self.console = console or Console()
        self.program_file: Optional[str] = None
        self.last_dump_address = 0
        self.last_dump_count = 16

    def preloop(self):
        """Setup before command loop."""
        self.console.print("[bold blue]LMC Interactive Debugger[/bold blue]")
        self.console.print("Load a program image with 'load <filename>' to start debugging.\n")

    def emptyline(self) -> bool:
        return False

    # File operations

    def do_load(self, arg: str) -> None:
        """Load a program image: load <filename>"""
        if not arg:
            self.console.print("[red]Error: Please specify a filename[/red]")
            return

        try:
            self.vm.load_file(arg)
        except (OSError, ImageLoaderError, VMException) as e:
            self.console.print(f"[red]Error loading program: {e}[/red]")
            return

        self.program_file = arg
        self.console.print(f"[green]Program loaded: {arg}[/green]")
        self._show_status()

    def do_reload(self, arg: str) -> None:
        """Reload the current program: reload"""
        if not self.program_file:
            self.console.print("[red]No program loaded[/red]")
            return

        self.do_load(self.program_file)

    # Execution control

    def do_step(self, arg: str) -> None:
        """Execute instruction(s): step [count]"""
        count = 1
        if arg:
            try:
                count = int(arg)
            except ValueError:
                self.console.print("[red]Invalid step count[/red]")
                return

        for _ in range(count):
            state = self.vm.step()
            if state != CPUState.RUNNING:
                break

        self._flush_output()
        self._show_status()

    def do_run(self, arg: str) -> None:
        """Run until halt, fault, input or breakpoint: run [max_steps]"""
        max_steps = DEFAULT_RUN_BUDGET
        if arg:
            try:
                max_steps = int(arg)
            except ValueError:
                self.console.print("[red]Invalid step count[/red]")
                return

        report = self.vm.run_until_halt_or_break(max_steps)
        self._flush_output()
        self.console.print(f"[green]Stopped ({report.reason.value}) after {report.steps} steps[/green]")
        self._show_status()

    def do_continue(self, arg: str) -> None:
        """Continue execution: continue"""
        self.do_run(arg)

    def do_input(self, arg: str) -> None:
        """Queue an input value for INP: input <value>"""
        try:
            value = self._parse_value(arg)
        except ValueError:
            self.console.print("[red]Usage: input <value>[/red]")
            return

        self.vm.provide_input(value)
        self.console.print(f"[green]Input queued: {value}[/green]")

    def do_output(self, arg: str) -> None:
        """Show pending output values: output"""
        if not self._flush_output():
            self.console.print("[yellow]No output[/yellow]")

    def do_reset(self, arg: str) -> None:
        """Reset the virtual machine: reset"""
        self.vm.reset()
        self.program_file = None
        self.console.print("[green]Virtual machine reset[/green]")
        self._show_status()

    # Breakpoints

    def do_break(self, arg: str) -> None:
        """Set breakpoint: break <address>"""
        if not arg:
            self._list_breakpoints()
            return

        try:
            address = self._parse_value(arg)
            self.vm.set_breakpoint(address)
            self.console.print(f"[green]Breakpoint set at {address:03d}[/green]")
        except (ValueError, MemoryException) as e:
            self.console.print(f"[red]Invalid address: {e}[/red]")

    def do_delete(self, arg: str) -> None:
        """Delete breakpoint: delete <address>"""
        if not arg:
            self.console.print("[red]Please specify breakpoint address[/red]")
            return

        try:
            address = self._parse_value(arg)
        except ValueError:
            self.console.print("[red]Invalid address[/red]")
            return

        self.vm.clear_breakpoint(address)
        self.console.print(f"[yellow]Breakpoint cleared at {address:03d}[/yellow]")

    def do_clear(self, arg: str) -> None:
        """Clear all breakpoints: clear"""
        self.vm.clear_all_breakpoints()
        self.console.print("[yellow]All breakpoints cleared[/yellow]")

    # Information display

    def do_status(self, arg: str) -> None:
        """Show VM status: status"""
        self._show_status()

    def do_registers(self, arg: str) -> None:
        """Show registers: registers"""
        self._show_registers()

    def do_memory(self, arg: str) -> None:
        """Show memory: memory [address] [count]"""
        address = self.last_dump_address
        count = self.last_dump_count

        parts = arg.split()
        try:
            if len(parts) >= 1:
                address = self._parse_value(parts[0])
            if len(parts) >= 2:
                count = int(parts[1])
        except ValueError:
            self.console.print("[red]Usage: memory \\[address] \\[count][/red]")
            return

        self.last_dump_address = address
        self.last_dump_count = count

        self._show_memory(address, count)

    def do_program(self, arg: str) -> None:
        """Show disassembly: program [start] [count]"""
        start = max(0, self.vm.snapshot().registers.program_counter - 5)
        count = 10

        parts = arg.split()
        try:
            if len(parts) >= 1:
                start = self._parse_value(parts[0])
            if len(parts) >= 2:
                count = int(parts[1])
        except ValueError:
            self.console.print("[red]Usage: program \\[start] \\[count][/red]")
            return

        self._show_program(start, count)

    # Memory modification

    def do_set(self, arg: str) -> None:
        """Set a memory cell: set <address> <value>"""
        parts = arg.split()
        if len(parts) != 2:
            self.console.print("[red]Usage: set <address> <value>[/red]")
            return

        try:
            address = self._parse_value(parts[0])
            value = self._parse_value(parts[1])
            self.vm.write_memory(address, value)
            self.console.print(f"[green]Memory[{address:03d}] = {self.vm.read_memory(address)}[/green]")
        except (ValueError, MemoryException) as e:
            self.console.print(f"[red]Error: {e}[/red]")

    # Utility commands

    def do_quit(self, arg: str) -> bool:
        """Quit the debugger: quit"""
        self.console.print("[blue]Goodbye![/blue]")
        return True

    def do_exit(self, arg: str) -> bool:
        """Exit the debugger: exit"""
        return self.do_quit(arg)

    def do_help(self, arg: str) -> None:
        """Show help: help [command]"""
        if arg:
            super().do_help(arg)
        else:
            self.console.print(Panel(
                "[bold]LMC Debugger Commands[/bold]\n\n"
                "[green]File Operations:[/green]\n"
                "  load <file>     - Load program image\n"
                "  reload          - Reload current program\n\n"
                "[green]Execution Control:[/green]\n"
                "  run \\[steps]     - Run until halt/fault/input/breakpoint\n"
                "  step \\[count]    - Execute instruction(s)\n"
                "  continue        - Continue execution\n"
                "  input <value>   - Queue a value for INP\n"
                "  output          - Show pending output\n"
                "  reset           - Reset VM\n\n"
                "[green]Breakpoints:[/green]\n"
                "  break \\[addr]    - Set/list breakpoints\n"
                "  delete <addr>   - Delete breakpoint\n"
                "  clear           - Clear all breakpoints\n\n"
                "[green]Information:[/green]\n"
                "  status          - Show VM status\n"
                "  registers       - Show registers\n"
                "  memory \\[addr]   - Show memory\n"
                "  program \\[addr]  - Show disassembly\n\n"
                "[green]Modification:[/green]\n"
                "  set <a> <v>     - Set memory cell\n\n"
                "[green]Other:[/green]\n"
                "  help \\[cmd]      - Show help\n"
                "  quit/exit       - Exit debugger",
                title="Help",
                border_style="blue"
            ))

    # Helper methods

    def _flush_output(self) -> bool:
        """Print and drain pending output. Returns True if anything was printed."""
        printed = False
        value = self.vm.take_output()
        while value is not None:
            self.console.print(f"[bold magenta]OUTPUT:[/bold magenta] {value}")
            printed = True
            value = self.vm.take_output()
        return printed

    def _show_status(self) -> None:
        """Display VM status."""
        snapshot = self.vm.snapshot()
        regs = snapshot.registers

        status_text = f"""[bold]CPU State:[/bold] {snapshot.state.value}
[bold]PC:[/bold] {regs.program_counter:03d}
[bold]ACC:[/bold] {regs.accumulator}
[bold]Instructions:[/bold] {snapshot.instruction_count}"""

        if snapshot.state == CPUState.AWAITING_INPUT:
            status_text += "\n[bold yellow]Waiting for input (use 'input <value>')[/bold yellow]"

        if snapshot.fault:
            status_text += (f"\n[bold red]Fault:[/bold red] {snapshot.fault.kind.value} "
                            f"at {snapshot.fault.address:03d}: {snapshot.fault.message}")

        self.console.print(Panel(status_text, title="VM Status", border_style="green"))

    def _show_registers(self) -> None:
        """Display registers."""
        regs = self.vm.snapshot().registers
        bits = regs.accumulator & ((1 << regs.width) - 1)

        table = Table(title="Registers")
        table.add_column("Reg", style="cyan")
        table.add_column("Hex", style="green")
        table.add_column("Dec", style="yellow")
        table.add_column("Flags", style="blue")

        flags = "".join([
            "V" if regs.overflow else "-",
            "N" if regs.negative else "-",
        ])
        table.add_row("ACC", f"0x{bits:0{regs.width // 4}X}", f"{regs.accumulator}", flags)
        table.add_row("PC", f"0x{regs.program_counter:03X}", f"{regs.program_counter}", "")

        self.console.print(table)

    def _show_memory(self, address: int, count: int = 16) -> None:
        """Display memory contents."""
        snapshot = self.vm.snapshot()

        table = Table(title=f"Memory ({address:03d})")
        table.add_column("Address", style="cyan")
        table.add_column("Dec", style="yellow")
        table.add_column("Data", style="blue")

        for addr in range(max(0, address), min(address + count, len(snapshot.memory))):
            table.add_row(
                f"{addr:03d}",
                f"{snapshot.memory[addr]}",
                "*" if addr in snapshot.data_addresses else ""
            )

        self.console.print(table)

    def _show_program(self, start: int = 0, count: int = 10) -> None:
        """Display disassembled program cells."""
        snapshot = self.vm.snapshot()
        pc = snapshot.registers.program_counter

        table = Table(title="Program")
        table.add_column("Address", style="cyan")
        table.add_column("Instruction", style="green")
        table.add_column("PC", style="red")

        for addr in range(max(0, start), min(start + count, len(snapshot.memory))):
            value = snapshot.memory[addr]
            text = f"DAT {value}" if addr in snapshot.data_addresses else disassemble(value)
            pc_marker = ">>>" if addr == pc else ""
            breakpoint_marker = "*" if addr in snapshot.breakpoints else ""

            table.add_row(f"{addr:03d}", text, f"{pc_marker} {breakpoint_marker}")

        self.console.print(table)

    def _list_breakpoints(self) -> None:
        """List all breakpoints."""
        breakpoints = self.vm.snapshot().breakpoints
        if not breakpoints:
            self.console.print("[yellow]No breakpoints set[/yellow]")
            return

        table = Table(title="Breakpoints")
        table.add_column("Address", style="cyan")

        for addr in sorted(breakpoints):
            table.add_row(f"{addr:03d}")

        self.console.print(table)

    def _parse_value(self, value_str: str) -> int:
        """Parse value string (hex or decimal)."""
        return parse_number(value_str)


def start_interactive_debugger(program_file: Optional[str] = None,
                               config: Optional[Dict[str, Any]] = None) -> None:
    """Start the interactive debugger.

    Args:
        program_file: Optional program image to load automatically
        config: Optional VM configuration
    """
    debugger = LMCDebugger(config)

    if program_file:
        debugger.onecmd(f"load {program_file}")

    try:
        debugger.cmdloop()
    except KeyboardInterrupt:
        print("\nGoodbye!")
