from dataclasses import dataclass
from typing import Optional

from .memory import OutOfMemoryError
from .page_table import L1_PT_ENTRIES, L2_PT_ENTRIES

VAS_PAGES = L1_PT_ENTRIES * L2_PT_ENTRIES


def split_page(page):
    """Split a logical page number into its (L1 index, L2 index) pair."""
    if page < 0 or page >= VAS_PAGES:
        raise ValueError(f"Page number {page} out of range (0 .. {VAS_PAGES - 1})")
    return page // L2_PT_ENTRIES, page % L2_PT_ENTRIES


def join_page(l1_index, l2_index):
    if not 0 <= l1_index < L1_PT_ENTRIES or not 0 <= l2_index < L2_PT_ENTRIES:
        raise ValueError(f"Table indices ({l1_index}, {l2_index}) out of range")
    return l1_index * L2_PT_ENTRIES + l2_index


@dataclass
class Translation:
    pid: int
    index: Optional[int]
    page: int
    l1_index: int
    l2_index: int
    l1_frame: int
    data_frame: Optional[int]
    l1_fault: bool
    was_fault: bool
    ref_count: int

    def trace_lines(self):
        index = "---" if self.index is None else f"{self.index:03d}"
        prefix = f"[PID {self.pid:02d} IDX:{index}] Page access {self.page:03d}:"
        lines = []
        if self.l1_fault:
            lines.append(f"{prefix} (L1PT) PF -> Allocated Frame {self.l1_frame:03d}")
        if self.data_frame is None:
            # data frame allocation failed after the L2 table was created
            return lines
        if self.was_fault:
            lines.append(f"{prefix} (L1PT) Frame {self.l1_frame:03d},(L2PT) PF -> Allocated Frame {self.data_frame:03d}")
        else:
            lines.append(f"{prefix} (L1PT) Frame {self.l1_frame:03d}, (L2PT) Frame {self.data_frame:03d}")
        return lines


class AddressTranslator:
    """Walks a process's two-level table, filling in missing levels on demand.

    Only data frame allocations count as page faults; creating an L2 table is
    tracked separately in ``table_faults``. ``OutOfMemoryError`` from either
    allocation propagates untouched and leaves the tables as they were at the
    moment of failure.
    """

    def __init__(self, memory, fabric):
        self.memory = memory
        self.fabric = fabric
        self.page_faults = 0
        self.table_faults = 0
        self.hits = 0
        self.access_log = []

    def translate(self, process, page, index=None):
        l1_index, l2_index = split_page(page)

        l1_entry = process.l1_table[l1_index]
        l1_fault = not l1_entry.valid
        if l1_fault:
            l2_table = self.fabric.allocate()
            l1_entry.map(l2_table.frame)
            self.table_faults += 1
        else:
            l2_table = self.fabric.table_at(l1_entry.frame)

        l2_entry = l2_table[l2_index]
        if not l2_entry.valid:
            try:
                frame = self.memory.allocate_frame()
            except OutOfMemoryError as e:
                if l1_fault:
                    e.translation = Translation(
                        pid=process.pid,
                        index=index,
                        page=page,
                        l1_index=l1_index,
                        l2_index=l2_index,
                        l1_frame=l1_entry.frame,
                        data_frame=None,
                        l1_fault=True,
                        was_fault=True,
                        ref_count=0
                    )
                raise
            l2_entry.map(frame)
            l2_entry.ref_count = 1
            process.page_faults += 1
            self.page_faults += 1
            was_fault = True
        else:
            l2_entry.touch()
            self.hits += 1
            was_fault = False

        translation = Translation(
            pid=process.pid,
            index=index,
            page=page,
            l1_index=l1_index,
            l2_index=l2_index,
            l1_frame=l1_entry.frame,
            data_frame=l2_entry.frame,
            l1_fault=l1_fault,
            was_fault=was_fault,
            ref_count=l2_entry.ref_count
        )
        self.access_log.append(translation)
        return translation

    def lookup(self, process, page):
        """Return the data frame for ``page`` without allocating, or None."""
        l1_index, l2_index = split_page(page)
        l1_entry = process.l1_table[l1_index]
        if not l1_entry.valid:
            return None
        l2_entry = self.fabric.table_at(l1_entry.frame)[l2_index]
        if not l2_entry.valid:
            return None
        return l2_entry.frame

    def get_status(self):
        return {
            'page_faults': self.page_faults,
            'table_faults': self.table_faults,
            'hits': self.hits,
            'references': len(self.access_log)
        }
