PTE_SIZE = 4
L1_PT_ENTRIES = 8
L2_PT_ENTRIES = 8

PAGE_INVALID = 0
PAGE_VALID = 1

# byte layout of one entry: frame, valid flag, reference count, padding
_FRAME = 0
_VALID = 1
_REF = 2


class PageTableEntry:
    """Typed view over the four bytes of one entry inside a table frame."""

    def __init__(self, raw):
        self._raw = raw

    def __repr__(self):
        if not self.valid:
            return "PageTableEntry(valid=False)"
        return f"PageTableEntry(frame={self.frame}, valid=True, ref_count={self.ref_count})"

    @property
    def frame(self):
        return self._raw[_FRAME]

    @frame.setter
    def frame(self, value):
        self._raw[_FRAME] = value

    @property
    def valid(self):
        return self._raw[_VALID] == PAGE_VALID

    @valid.setter
    def valid(self, flag):
        self._raw[_VALID] = PAGE_VALID if flag else PAGE_INVALID

    @property
    def ref_count(self):
        return self._raw[_REF]

    @ref_count.setter
    def ref_count(self, value):
        self._raw[_REF] = value & 0xFF

    def map(self, frame):
        self.frame = frame
        self.valid = True

    def touch(self):
        self.ref_count = self.ref_count + 1
        return self.ref_count


class PageTablePage:
    def __init__(self, frame, view, entries):
        self.frame = frame
        self._view = view
        self._entries = entries

    def __repr__(self):
        return f"PageTablePage(frame={self.frame}, entries={self._entries})"

    def __len__(self):
        return self._entries

    def __getitem__(self, index):
        if index < 0 or index >= self._entries:
            raise IndexError(f"entry {index} out of range (0 .. {self._entries - 1})")
        offset = index * PTE_SIZE
        return PageTableEntry(self._view[offset:offset + PTE_SIZE])

    def __iter__(self):
        for index in range(self._entries):
            yield self[index]

    def valid_entries(self):
        for index, entry in enumerate(self):
            if entry.valid:
                yield index, entry


class PageTableFabric:
    """Creates page table pages inside physical memory and reopens them by frame."""

    def __init__(self, memory, entries=L2_PT_ENTRIES):
        if entries * PTE_SIZE > memory.page_size:
            raise ValueError(
                f"{entries} entries of {PTE_SIZE} bytes do not fit a {memory.page_size} byte frame"
            )
        self.memory = memory
        self.entries = entries
        self.tables_allocated = 0

    def allocate(self):
        frame = self.memory.allocate_frame()
        view = self.memory.frame_view(frame)
        view[:] = bytes(len(view))
        self.tables_allocated += 1
        return PageTablePage(frame, view, self.entries)

    def table_at(self, frame):
        return PageTablePage(frame, self.memory.frame_view(frame), self.entries)
