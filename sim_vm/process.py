from datetime import datetime
from enum import Enum


class ProcessState(Enum):
    RUNNING = "RUNNING"
    DONE = "DONE"


class Process:
    def __init__(self, pid, references, l1_table):
        self.pid = pid
        self.references = bytes(references)
        self.cursor = 0
        self.page_faults = 0
        self.l1_table = l1_table
        self.state = ProcessState.RUNNING
        self.created_at = datetime.now()
        self.history = []
        self.state_flow = []
        self.record_state(ProcessState.RUNNING, "Loaded")

    def __repr__(self):
        return (f"Process(pid={self.pid}, state={self.state.value}, "
                f"cursor={self.cursor}/{len(self.references)}, page_faults={self.page_faults})")

    @property
    def ref_count(self):
        return self.cursor

    @property
    def finished(self):
        return self.cursor >= len(self.references)

    def next_reference(self):
        if self.finished:
            raise IndexError(f"process {self.pid} has no references left")
        index = self.cursor
        self.cursor += 1
        return index, self.references[index]

    def record_state(self, new_state, note=None):
        self.state = new_state
        entry = {
            'time': datetime.now(),
            'state': new_state.value,
            'note': note
        }
        self.state_flow.append(entry)
