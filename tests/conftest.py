import io

import pytest

from sim_vm.loader import ProcessRecord, write_records
from sim_vm.memory import PhysicalMemory
from sim_vm.page_table import PageTableFabric
from sim_vm.process import Process
from sim_vm.virtual_memory import AddressTranslator


def encode(*records):
    stream = io.BytesIO()
    write_records(stream, [ProcessRecord(pid, bytes(refs)) for pid, refs in records])
    return stream.getvalue()


@pytest.fixture
def record_stream():
    """Build an in-memory binary input from ``(pid, references)`` pairs."""
    def _build(*records):
        return io.BytesIO(encode(*records))
    return _build


@pytest.fixture
def memory():
    return PhysicalMemory()


@pytest.fixture
def fabric(memory):
    return PageTableFabric(memory)


@pytest.fixture
def translator(memory, fabric):
    return AddressTranslator(memory, fabric)


@pytest.fixture
def make_process(fabric):
    def _make(pid=1, references=()):
        return Process(pid, bytes(references), fabric.allocate())
    return _make
