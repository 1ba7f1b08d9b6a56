"""Tests for the simulator facade: loading, running and the timeline."""

import io

import pytest

from sim_vm.loader import LoadTruncatedError
from sim_vm.process import ProcessState
from sim_vm.simulator import LOAD_END, LOAD_START, OUT_OF_MEMORY, SIMULATE_END, SIMULATE_START, Simulator


class TestLoading:
    """Verify process creation from records."""

    def test_each_process_gets_an_l1_table_at_load(self, record_stream) -> None:
        """L1 tables take frames 0, 1, ... in load order."""
        sim = Simulator()
        assert sim.load(record_stream((1, [0]), (2, [0]), (3, []))) == 3
        assert [p.l1_table.frame for p in sim.processes] == [0, 1, 2]
        assert sim.memory.allocated_frames == 3

    def test_load_respects_process_limit(self, record_stream) -> None:
        """Records beyond max_processes are not loaded."""
        sim = Simulator(max_processes=2)
        sim.load(record_stream((1, [0]), (2, [0]), (3, [0])))
        assert [p.pid for p in sim.processes] == [1, 2]

    def test_out_of_memory_while_loading(self, record_stream) -> None:
        """No frame for an L1 table fails the whole run."""
        sim = Simulator(total_frames=2)
        assert sim.load(record_stream((1, [0]), (2, [0]), (3, [0]))) == 2
        assert sim.failed
        assert sim.run() is False
        assert sim.snapshot() is None

    def test_truncated_input_propagates(self, record_stream) -> None:
        """A record cut short after its pid is a load failure."""
        stream = io.BytesIO(record_stream((1, [0, 1])).getvalue()[:-1])
        with pytest.raises(LoadTruncatedError):
            Simulator().load(stream)

    def test_load_is_logged(self, record_stream) -> None:
        """Loading records a listing of the process."""
        sim = Simulator()
        sim.load(record_stream((4, [1, 12])))
        messages = [e['message'] for e in sim.get_process_history(4)]
        assert messages == ["4 2", "01 12 "]

    def test_listing_precedes_failed_table_allocation(self, record_stream) -> None:
        """The record that finds no frame for its L1 table is still listed."""
        sim = Simulator(total_frames=1)
        assert sim.load(record_stream((1, [0]), (2, [5]))) == 1
        assert [e['message'] for e in sim.get_timeline()] == [
            LOAD_START, "1 1", "00 ", "2 1", "05 ", OUT_OF_MEMORY
        ]
        assert sim.find_process(2) is None


class TestRun:
    """Verify a run to the terminal state."""

    def test_scenario_statistics(self, record_stream) -> None:
        """One process over pages 0, 1, 8, 0."""
        sim = Simulator()
        sim.load(record_stream((1, [0, 1, 8, 0])))
        assert sim.run() is True
        proc = sim.find_process(1)
        assert proc.page_faults == 3
        assert proc.ref_count == 4
        assert proc.state == ProcessState.DONE
        assert sim.memory.allocated_frames == 6

    def test_step_advances_one_cycle(self, record_stream) -> None:
        """step runs exactly one round-robin cycle."""
        sim = Simulator()
        sim.load(record_stream((1, [0, 1]), (2, [2, 3, 4])))
        assert sim.step() == 2
        assert [p.cursor for p in sim.processes] == [1, 1]
        assert not sim.completed
        assert sim.snapshot() is None

    def test_completion_needs_an_idle_cycle(self, record_stream) -> None:
        """The run is complete after a cycle finds nothing to do."""
        sim = Simulator()
        sim.load(record_stream((1, [0])))
        assert sim.step() == 1
        assert not sim.completed
        assert sim.step() == 0
        assert sim.completed
        assert sim.snapshot() is not None

    def test_every_access_is_logged(self, record_stream) -> None:
        """One MEMORY event per reference, attributed to its process."""
        sim = Simulator()
        sim.load(record_stream((1, [0, 0]), (2, [5])))
        sim.run()
        events = [e for e in sim.get_timeline() if e['category'] == 'MEMORY']
        assert [(e['pid'], e['metadata']['index'], e['metadata']['fault']) for e in events] == [
            (1, 0, True), (2, 0, True), (1, 1, False)
        ]

    def test_out_of_memory_during_run(self, record_stream) -> None:
        """Running out of frames aborts the run and withholds the snapshot."""
        sim = Simulator(total_frames=4)
        sim.load(record_stream((1, list(range(0, 64, 8)))))
        assert sim.run() is False
        assert sim.failed
        assert sim.snapshot() is None
        out_of_memory = [e for e in sim.get_timeline() if e['message'] == OUT_OF_MEMORY]
        assert len(out_of_memory) == 1

    def test_out_of_memory_logs_partial_walk(self, record_stream) -> None:
        """The L2 table created just before exhaustion shows up in the timeline."""
        sim = Simulator(total_frames=2)
        sim.load(record_stream((1, [0])))
        assert sim.run() is False
        partial, failure = sim.get_timeline()[-2:]
        assert partial['pid'] == 1
        assert partial['message'] == "[PID 01 IDX:000] Page access 000: (L1PT) PF -> Allocated Frame 001"
        assert partial['metadata']['l1_frame'] == 1
        assert failure['message'] == OUT_OF_MEMORY

    def test_no_progress_after_failure(self, record_stream) -> None:
        """Once aborted, further steps do nothing."""
        sim = Simulator(total_frames=3)
        sim.load(record_stream((1, [0, 1])))
        sim.run()
        cursor = sim.processes[0].cursor
        assert sim.step() == 0
        assert sim.processes[0].cursor == cursor


class TestTimeline:
    """Verify the event log."""

    def test_steps_are_numbered(self, record_stream) -> None:
        """Events carry increasing step numbers."""
        sim = Simulator()
        sim.load(record_stream((1, [0])))
        sim.run()
        steps = [e['step'] for e in sim.get_timeline()]
        assert steps == list(range(1, len(steps) + 1))

    def test_phase_markers(self, record_stream) -> None:
        """Loading and simulating are bracketed by start and end events."""
        sim = Simulator()
        sim.load(record_stream((1, [0])))
        sim.run()
        sim.run()
        markers = [e['message'] for e in sim.get_timeline() if e['category'] in ('LOAD', 'SIM') and e['pid'] is None]
        assert markers == [LOAD_START, LOAD_END, SIMULATE_START, SIMULATE_END]

    def test_limit_returns_latest(self, record_stream) -> None:
        """A limit keeps only the most recent events."""
        sim = Simulator()
        sim.load(record_stream((1, [0, 1, 2])))
        sim.run()
        last = sim.get_timeline(2)
        assert last == sim.timeline[-2:]

    def test_unknown_process_history(self) -> None:
        """History of a pid that was never loaded is None."""
        assert Simulator().get_process_history(99) is None
