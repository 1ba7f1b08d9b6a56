from dataclasses import dataclass, field
from typing import List

from rich import box
from rich.console import Group
from rich.table import Table

from .virtual_memory import join_page


@dataclass
class PageMapping:
    page: int
    frame: int
    ref_count: int


@dataclass
class TableReport:
    l1_index: int
    frame: int
    mappings: List[PageMapping] = field(default_factory=list)


@dataclass
class ProcessReport:
    pid: int
    page_faults: int
    references: int
    tables: List[TableReport] = field(default_factory=list)

    @property
    def allocated_frames(self):
        # L1 table plus data frames; L2 tables only show up in the grand total
        return 1 + self.page_faults


@dataclass
class Snapshot:
    processes: List[ProcessReport]
    total_allocated: int

    @property
    def total_faults(self):
        return sum(p.page_faults for p in self.processes)

    @property
    def total_references(self):
        return sum(p.references for p in self.processes)


def build_snapshot(processes, memory, fabric):
    reports = []
    for process in processes:
        tables = []
        for l1_index, l1_entry in process.l1_table.valid_entries():
            table = TableReport(l1_index, l1_entry.frame)
            for l2_index, l2_entry in fabric.table_at(l1_entry.frame).valid_entries():
                table.mappings.append(
                    PageMapping(join_page(l1_index, l2_index), l2_entry.frame, l2_entry.ref_count)
                )
            tables.append(table)
        reports.append(ProcessReport(process.pid, process.page_faults, process.ref_count, tables))
    return Snapshot(reports, memory.allocated_frames)


def format_load_listing(pid, references):
    return [
        f"{pid} {len(references)}",
        "".join(f"{page:02d} " for page in references)
    ]


def format_report(snapshot):
    lines = []
    for p in snapshot.processes:
        lines.append(
            f"** Process {p.pid:03d}: Allocated Frames={p.allocated_frames:03d} "
            f"PageFaults/References={p.page_faults:03d}/{p.references:03d}"
        )
        for table in p.tables:
            lines.append(f"(L1PT) PTE {table.l1_index:03d} -> [FRAME] {table.frame:03d}")
            for m in table.mappings:
                lines.append(f"(L2PT) [PAGE] {m.page:03d} -> [FRAME] {m.frame:03d} REF={m.ref_count:03d}")
    lines.append(
        f"Total: Allocated Frames={snapshot.total_allocated:03d} "
        f"Page Faults/References={snapshot.total_faults:03d}/{snapshot.total_references:03d}"
    )
    return lines


def render_report(snapshot):
    summary = Table(
        title="Processes",
        show_lines=True,
        header_style="bold cyan",
        box=box.SIMPLE_HEAVY
    )
    summary.add_column("PID", justify="right", style="bold white")
    summary.add_column("Allocated Frames", justify="right")
    summary.add_column("Page Faults", justify="right", style="magenta")
    summary.add_column("References", justify="right")
    for p in snapshot.processes:
        summary.add_row(str(p.pid), str(p.allocated_frames), str(p.page_faults), str(p.references))
    summary.add_row(
        "[bold]Total[/]",
        f"[bold]{snapshot.total_allocated}[/]",
        f"[bold]{snapshot.total_faults}[/]",
        f"[bold]{snapshot.total_references}[/]"
    )
    renderables = [summary]
    for p in snapshot.processes:
        renderables.append(render_tables(p))
    return Group(*renderables)


def render_tables(process_report):
    table = Table(title=f"Page tables PID {process_report.pid}", box=box.ROUNDED, row_styles=["dim", "none"])
    table.add_column("L1 PTE", justify="right")
    table.add_column("L2 frame", justify="right", style="blue")
    table.add_column("Page", justify="right")
    table.add_column("Frame", justify="right", style="green")
    table.add_column("Ref", justify="right")
    for l2 in process_report.tables:
        if not l2.mappings:
            table.add_row(str(l2.l1_index), str(l2.frame), "-", "-", "-")
        for m in l2.mappings:
            table.add_row(str(l2.l1_index), str(l2.frame), str(m.page), str(m.frame), str(m.ref_count))
    return table
