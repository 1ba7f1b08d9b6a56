from datetime import datetime

from .loader import MAX_PROCESSES, iter_records
from .memory import PAGE_SIZE, PAS_FRAMES, OutOfMemoryError, PhysicalMemory
from .page_table import L1_PT_ENTRIES, L2_PT_ENTRIES, PageTableFabric
from .process import Process
from .report import build_snapshot, format_load_listing
from .scheduler import RoundRobinScheduler
from .virtual_memory import AddressTranslator

OUT_OF_MEMORY = "Out of memory!!"
LOAD_START = "load_process() start"
LOAD_END = "load_process() end"
SIMULATE_START = "simulate() start"
SIMULATE_END = "simulate() end"


class Simulator:
    def __init__(self, total_frames=PAS_FRAMES, page_size=PAGE_SIZE, max_processes=MAX_PROCESSES):
        self.memory = PhysicalMemory(total_frames=total_frames, page_size=page_size)
        self.fabric = PageTableFabric(self.memory, entries=max(L1_PT_ENTRIES, L2_PT_ENTRIES))
        self.translator = AddressTranslator(self.memory, self.fabric)
        self.scheduler = RoundRobinScheduler(self.translator, on_access=self._on_access)
        self.max_processes = max_processes
        self.processes = []
        self.failed = False
        self.completed = False
        self.timeline = []
        self.timeline_step = 1

    def load_process(self, record):
        # the listing is logged before the L1 table exists, so it survives a failed allocation
        listing = [self.log_event("LOAD", line, pid=record.pid)
                   for line in format_load_listing(record.pid, record.references)]
        l1_table = self.fabric.allocate()
        process = Process(record.pid, record.references, l1_table)
        self.processes.append(process)
        for event in listing:
            event['metadata']['l1_frame'] = l1_table.frame
            process.history.append(event)
        return process

    def load(self, stream):
        self.log_event("LOAD", LOAD_START)
        loaded = 0
        for record in iter_records(stream, limit=self.max_processes - len(self.processes)):
            try:
                self.load_process(record)
            except OutOfMemoryError as e:
                self._fail(e)
                return loaded
            loaded += 1
        self.log_event("LOAD", LOAD_END, metadata={'loaded': loaded})
        return loaded

    def step(self):
        if self.failed or self.completed:
            return 0
        try:
            processed = self.scheduler.run_cycle(self.processes)
        except OutOfMemoryError as e:
            self._fail(e)
            return 0
        if not processed:
            self.completed = True
            self.log_event("SIM", SIMULATE_END,
                           metadata={'cycles': self.scheduler.cycles, **self.translator.get_status()})
        return processed

    def run(self):
        if self.failed:
            return False
        if self.completed:
            return True
        self.log_event("SIM", SIMULATE_START, metadata={'processes': len(self.processes)})
        while self.step():
            pass
        return not self.failed

    def snapshot(self):
        if self.failed or not self.completed:
            return None
        return build_snapshot(self.processes, self.memory, self.fabric)

    def _on_access(self, translation):
        process = self.scheduler.get_running_process()
        self.log_event(
            "MEMORY",
            "\n".join(translation.trace_lines()),
            process=process,
            metadata={
                'index': translation.index,
                'page': translation.page,
                'l1_frame': translation.l1_frame,
                'data_frame': translation.data_frame,
                'l1_fault': translation.l1_fault,
                'fault': translation.was_fault
            }
        )

    def _fail(self, error):
        self.failed = True
        if error.translation is not None:
            partial = error.translation
            self.log_event(
                "MEMORY",
                "\n".join(partial.trace_lines()),
                pid=partial.pid,
                metadata={'index': partial.index, 'l1_frame': partial.l1_frame, 'l1_fault': True}
            )
        self.log_event("MEMORY", OUT_OF_MEMORY, metadata={'detail': str(error), **self.memory.get_memory_info()})

    def log_event(self, category, message, process=None, metadata=None, pid=None):
        event = {
            'step': self.timeline_step,
            'timestamp': datetime.now(),
            'category': category.upper(),
            'message': message,
            'metadata': metadata or {},
            'pid': process.pid if process else pid
        }
        self.timeline_step += 1
        self.timeline.append(event)
        if process:
            process.history.append(event)
        return event

    def get_timeline(self, limit=None):
        if limit is None or limit >= len(self.timeline):
            return list(self.timeline)
        return self.timeline[-limit:]

    def find_process(self, pid):
        for process in self.processes:
            if process.pid == pid:
                return process
        return None

    def get_process_history(self, pid):
        process = self.find_process(pid)
        if not process:
            return None
        return list(process.history)
