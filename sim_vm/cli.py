import argparse
import sys

from rich import box
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .loader import LoadError
from .page_table import L1_PT_ENTRIES, L2_PT_ENTRIES
from .process import ProcessState
from .report import build_snapshot, format_report, render_report, render_tables
from .simulator import OUT_OF_MEMORY, Simulator
from .virtual_memory import VAS_PAGES

EXIT_OK = 0
EXIT_OUT_OF_MEMORY = 1
EXIT_LOAD_ERROR = 2


class CommandLineInterface:
    def __init__(self, simulator, plain=False, quiet=False, console=None):
        self.sim = simulator
        self.rich_enabled = not plain
        self.quiet = quiet
        if console is None and self.rich_enabled:
            console = Console()
        self.console = console
        self.running = True
        self.palette = {
            'primary': 'cyan',
            'success': 'green',
            'warning': 'yellow',
            'danger': 'red',
            'muted': 'bright_black'
        }
        self.category_colors = {
            'LOAD': 'cyan',
            'MEMORY': 'blue',
            'SIM': 'magenta'
        }
        self.commands = {
            'help': self._help,
            'ps': self._list_processes,
            'step': self._step,
            'run': self._run,
            'tables': self._tables,
            'stats': self._stats,
            'report': self._report,
            'timeline': self._timeline,
            'history': self._process_history,
            'exit': self._exit
        }
        self._shown = 0

    def batch(self, stream):
        try:
            self.sim.load(stream)
        except LoadError as e:
            self._print(self._feedback(f"Load failed: {e}", success=False, title="Load"))
            return EXIT_LOAD_ERROR
        self._print(self._new_events())
        if not self.sim.failed:
            self.sim.run()
            self._print(self._new_events())
        if self.sim.failed:
            return EXIT_OUT_OF_MEMORY
        self._print(self._report([]))
        return EXIT_OK

    def _new_events(self):
        events = [e for e in self.sim.timeline[self._shown:] if self._visible(e)]
        self._shown = len(self.sim.timeline)
        if not events:
            return None
        if not self.rich_enabled:
            return "\n".join(e['message'] for e in events)
        if all(e['category'] == 'LOAD' for e in events):
            return Panel(
                "\n".join(e['message'] for e in events),
                title="Loaded processes",
                border_style=self.palette['primary'],
                box=box.ROUNDED
            )
        return self._trace_table(events)

    def _visible(self, event):
        if event['message'] == OUT_OF_MEMORY:
            return True
        if event['category'] == 'MEMORY':
            return not self.quiet
        return True

    def _trace_table(self, events):
        table = Table(
            title="Page accesses",
            box=box.SIMPLE_HEAVY,
            header_style="bold white",
            row_styles=["dim", "none"]
        )
        table.add_column("PID", justify="right")
        table.add_column("IDX", justify="right")
        table.add_column("Page", justify="right")
        table.add_column("L1 frame", justify="right")
        table.add_column("Frame", justify="right")
        table.add_column("Event")
        for e in events:
            meta = e['metadata']
            if 'page' not in meta:
                color = 'red' if e['message'] == OUT_OF_MEMORY else self.category_colors.get(e['category'], 'white')
                table.add_row("", "", "", "", "", f"[{color}]" + e['message'] + "[/]")
                continue
            if meta['fault']:
                event = "[yellow]L1 PF + PF[/]" if meta['l1_fault'] else "[yellow]PF[/]"
            else:
                event = "[green]HIT[/]"
            table.add_row(
                f"{e['pid']:02d}",
                f"{meta['index']:03d}",
                f"{meta['page']:03d}",
                f"{meta['l1_frame']:03d}",
                f"{meta['data_frame']:03d}",
                event
            )
        return table

    def _help(self, args):
        sections = {
            "Simulation": [
                "`step [n]` - Run n round-robin cycles (default 1)",
                "`run` - Run until every process is done",
                "`report` - Final allocation report"
            ],
            "Inspection": [
                "`ps` - List processes",
                "`tables <pid>` - Two-level page table of a process",
                "`stats` - Physical memory and translation counters",
                "`timeline [n]` - Latest events",
                "`history <pid>` - Events of one process"
            ],
            "Other": [
                "`help` - This help",
                "`exit` - Leave the simulator"
            ]
        }
        if not self.rich_enabled:
            lines = []
            for title, commands in sections.items():
                lines.append(f"{title}:")
                lines.extend(f"  {c.replace('`', '')}" for c in commands)
            return "\n".join(lines)
        grid = Table.grid(padding=1)
        grid.add_column(justify="left")
        grid.add_column(justify="left")
        for title, commands in sections.items():
            grid.add_row(f"[bold]{title}[/]", "\n".join(commands))
        return Panel(grid, title="Commands", border_style=self.palette['primary'], box=box.ROUNDED)

    def _list_processes(self, args):
        processes = self.sim.processes
        if not processes:
            return self._feedback("No processes loaded", success=False, title="Processes")
        if not self.rich_enabled:
            output = f"{'PID':<6} {'State':<10} {'Progress':<12} {'Faults':<8} {'L1 frame':<8}\n"
            output += "-" * 48 + "\n"
            for p in processes:
                progress = f"{p.cursor}/{len(p.references)}"
                output += f"{p.pid:<6} {p.state.value:<10} {progress:<12} {p.page_faults:<8} {p.l1_table.frame:<8}\n"
            return output.rstrip("\n")
        table = Table(title="Processes", show_lines=True, header_style="bold cyan", box=box.SIMPLE_HEAVY)
        table.add_column("PID", justify="right", style="bold white")
        table.add_column("State")
        table.add_column("Progress", justify="right")
        table.add_column("Page faults", justify="right")
        table.add_column("L1 frame", justify="right")
        state_colors = {
            ProcessState.RUNNING: "cyan",
            ProcessState.DONE: "green"
        }
        for p in processes:
            table.add_row(
                str(p.pid),
                f"[{state_colors.get(p.state, 'white')}]" + p.state.value + "[/]",
                f"{p.cursor}/{len(p.references)}",
                str(p.page_faults),
                str(p.l1_table.frame)
            )
        return table

    def _step(self, args):
        cycles = int(args[0]) if args and args[0].isdigit() else 1
        for _ in range(cycles):
            if not self.sim.step():
                break
        return self._after_progress()

    def _run(self, args):
        self.sim.run()
        return self._after_progress()

    def _after_progress(self):
        events = self._new_events()
        if events is not None:
            self._print(events)
        if self.sim.failed:
            return self._feedback("Simulation aborted, no report available", success=False, title="Memory")
        if self.sim.completed:
            return self._feedback(f"All processes done after {self.sim.scheduler.cycles} cycles", title="Scheduler")
        return None

    def _tables(self, args):
        if not args or not args[0].lstrip("-").isdigit():
            return "Usage: tables <pid>"
        pid = int(args[0])
        process = self.sim.find_process(pid)
        if process is None:
            return self._feedback(f"Process {pid} not found", success=False, title="Page tables")
        # builds a one-process report even mid-run; totals are not shown here
        snapshot = build_snapshot([process], self.sim.memory, self.sim.fabric)
        if not self.rich_enabled:
            return "\n".join(format_report(snapshot)[:-1])
        return render_tables(snapshot.processes[0])

    def _stats(self, args):
        memory = self.sim.memory.get_memory_info()
        status = self.sim.translator.get_status()
        if not self.rich_enabled:
            return "\n".join([
                f"Frame size: {memory['page_size']} B",
                f"Frames allocated/total: {memory['allocated']}/{memory['total']}",
                f"Page tables: {self.sim.fabric.tables_allocated}",
                f"Page faults: {status['page_faults']}",
                f"L1 faults: {status['table_faults']}",
                f"Hits: {status['hits']}",
                f"Cycles: {self.sim.scheduler.cycles}",
                self._frame_map()
            ])
        table = Table(title="Physical memory", box=box.ROUNDED)
        table.add_column("Item", justify="left", style="bold")
        table.add_column("Value", justify="right")
        table.add_row("Frame size", f"{memory['page_size']} B")
        table.add_row("Frames allocated", str(memory['allocated']))
        table.add_row("Frames free", str(memory['free']))
        table.add_row("Page tables", str(self.sim.fabric.tables_allocated))
        table.add_row("Page faults", str(status['page_faults']))
        table.add_row("L1 faults", str(status['table_faults']))
        table.add_row("Hits", str(status['hits']))
        table.add_row("Cycles", str(self.sim.scheduler.cycles))
        return Group(table, self._frame_map())

    def _report(self, args):
        snapshot = self.sim.snapshot()
        if snapshot is None:
            if self.sim.failed:
                return self._feedback(OUT_OF_MEMORY, success=False, title="Report")
            return self._feedback("Simulation still running, use 'run' first", success=False, title="Report")
        if not self.rich_enabled:
            return "\n".join(format_report(snapshot))
        return render_report(snapshot)

    def _timeline(self, args):
        limit = None
        if args and args[0].isdigit():
            limit = int(args[0])
        events = self.sim.get_timeline(limit)
        if not events:
            return self._feedback("No events yet", success=False, title="Timeline")
        if not self.rich_enabled:
            lines = []
            for e in events:
                timestamp = e['timestamp'].strftime("%H:%M:%S")
                lines.append(f"[{e['step']}] {timestamp} {e['category']}: {e['message']}")
            return "\n".join(lines)
        table = Table(title="Timeline", box=box.SIMPLE_HEAVY, header_style="bold white", row_styles=["dim", "none"])
        table.add_column("#", justify="right")
        table.add_column("Time")
        table.add_column("Type")
        table.add_column("Detail")
        for e in events:
            color = self.category_colors.get(e['category'], 'white')
            timestamp = e['timestamp'].strftime("%H:%M:%S")
            table.add_row(
                str(e['step']),
                timestamp,
                f"[{color}]" + e['category'] + "[/]",
                Text(e['message'])
            )
        return table

    def _process_history(self, args):
        if not args or not args[0].isdigit():
            return "Usage: history <pid>"
        pid = int(args[0])
        history = self.sim.get_process_history(pid)
        if history is None:
            return self._feedback(f"Process {pid} not found", success=False, title="History")
        if not self.rich_enabled:
            return "\n".join(f"[{e['step']}] {e['category']}: {e['message']}" for e in history)
        table = Table(title=f"History of process {pid}", box=box.ROUNDED, row_styles=["dim", "none"])
        table.add_column("#", justify="right")
        table.add_column("Event")
        for e in history:
            color = self.category_colors.get(e['category'], 'white')
            table.add_row(str(e['step']), Text(e['message'], style=color))
        return table

    def _exit(self, args):
        self.running = False
        return "Bye"

    def run(self):
        self._render_banner()
        self._print("Type 'help' for the list of commands\n")
        while self.running:
            try:
                command_input = input("VM> ").strip()
                if not command_input:
                    continue
                parts = command_input.split()
                command = parts[0].lower()
                args = parts[1:]
                if command in self.commands:
                    result = self.commands[command](args)
                    if result is not None:
                        self._print(result)
                else:
                    self._print(self._feedback("Unknown command, type 'help'", success=False, title="Error"))
            except (KeyboardInterrupt, EOFError):
                self._print("\nBye")
                self.running = False

    def _frame_kinds(self):
        kinds = ['data'] * self.sim.memory.allocated_frames
        for process in self.sim.processes:
            kinds[process.l1_table.frame] = 'l1'
            for _, entry in process.l1_table.valid_entries():
                kinds[entry.frame] = 'l2'
        return kinds

    def _frame_map(self, width=64):
        """One cell per physical frame: L1 table, L2 table, data page or free."""
        symbols = {'l1': ("1", "cyan"), 'l2': ("2", "blue"), 'data': ("d", "green")}
        kinds = self._frame_kinds()
        kinds += ['free'] * self.sim.memory.free_frames
        text = Text()
        for frame, kind in enumerate(kinds):
            if frame and frame % width == 0:
                text.append("\n")
            symbol, style = symbols.get(kind, ("·", self.palette['muted']))
            text.append(symbol, style=style)
        if not self.rich_enabled:
            return text.plain
        return text

    def _feedback(self, message, success=True, title=None):
        used = f"frames {self.sim.memory.allocated_frames}/{self.sim.memory.total_frames}"
        if not self.rich_enabled:
            tag = title or ("OK" if success else "Error")
            return f"[{tag}] {message} ({used})"
        style = self.palette['success'] if success else self.palette['danger']
        return Panel(message, title=title, subtitle=used, subtitle_align="right",
                     border_style=style, box=box.ROUNDED)

    def _render_banner(self):
        memory = self.sim.memory
        geometry = (f"{memory.total_frames} frames of {memory.page_size} B, "
                    f"{L1_PT_ENTRIES}x{L2_PT_ENTRIES} page tables, {VAS_PAGES} pages per process")
        loaded = f"{len(self.sim.processes)} processes loaded"
        if not self.rich_enabled:
            self._print(f"VM shell - {geometry}")
            self._print(loaded)
            return
        grid = Table.grid(padding=(0, 2))
        grid.add_column(style="bold")
        grid.add_column()
        grid.add_row("Memory", geometry)
        grid.add_row("Processes", ", ".join(f"PID {p.pid} ({len(p.references)} refs)" for p in self.sim.processes) or loaded)
        self._print(Panel(grid, title="VM shell", border_style=self.palette['primary'], box=box.ROUNDED))

    def _print(self, message):
        if message is None:
            return
        if self.console is not None and self.rich_enabled:
            self.console.print(message)
        else:
            print(message)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="sim-vm",
        description="Simulate demand paging with a two-level page table."
    )
    parser.add_argument("input", nargs="?", help="binary process records (default: stdin)")
    parser.add_argument("--plain", action="store_true", help="plain text output")
    parser.add_argument("--quiet", action="store_true", help="do not print every page access")
    parser.add_argument("--interactive", action="store_true", help="load the input and open a shell")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.interactive and not args.input:
        parser.error("--interactive needs an input file, stdin is used for commands")
    sim = Simulator()
    cli = CommandLineInterface(sim, plain=args.plain, quiet=args.quiet)
    if args.input:
        with open(args.input, "rb") as stream:
            return _start(cli, sim, stream, args.interactive)
    return _start(cli, sim, sys.stdin.buffer, args.interactive)


def _start(cli, sim, stream, interactive):
    if not interactive:
        return cli.batch(stream)
    try:
        sim.load(stream)
    except LoadError as e:
        cli._print(cli._feedback(f"Load failed: {e}", success=False, title="Load"))
        return EXIT_LOAD_ERROR
    cli._print(cli._new_events())
    if sim.failed:
        return EXIT_OUT_OF_MEMORY
    cli.run()
    return EXIT_OUT_OF_MEMORY if sim.failed else EXIT_OK
