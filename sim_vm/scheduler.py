from .process import ProcessState


class RoundRobinScheduler:
    """Advances every live process by exactly one reference per cycle.

    Processes are visited in the order they are given, which is the order
    they were loaded. A run ends after the first cycle that finds every
    process already exhausted.
    """

    def __init__(self, translator, on_access=None):
        self.translator = translator
        self.on_access = on_access
        self.running_process = None
        self.cycles = 0

    def run_cycle(self, processes):
        processed = 0
        try:
            for process in processes:
                if process.finished:
                    self._finish(process)
                    continue
                self.running_process = process
                index, page = process.next_reference()
                translation = self.translator.translate(process, page, index)
                processed += 1
                if self.on_access:
                    self.on_access(translation)
                if process.finished:
                    self._finish(process)
        finally:
            self.running_process = None
        if processed:
            self.cycles += 1
        return processed

    def run_all(self, processes):
        start = self.cycles
        while self.run_cycle(processes):
            pass
        return self.cycles - start

    def _finish(self, process):
        if process.state != ProcessState.DONE:
            process.record_state(ProcessState.DONE, "Reference sequence exhausted")

    def get_running_process(self):
        return self.running_process
