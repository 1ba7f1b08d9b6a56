"""Binary process records.

Each record is a little-endian ``int32`` pid, an ``int32`` reference count,
and then that many unsigned bytes, one logical page number per byte.
"""

from dataclasses import dataclass, field
import struct

from .virtual_memory import VAS_PAGES

MAX_PROCESSES = 10
MAX_REFERENCES = 256

_INT = struct.Struct("<i")


class LoadError(Exception):
    pass


class LoadTruncatedError(LoadError):
    """Input ended inside a record whose pid had already been read."""


class InvalidRecordError(LoadError):
    pass


@dataclass
class ProcessRecord:
    pid: int
    references: bytes = field(default=b"")

    def __post_init__(self):
        self.references = bytes(self.references)


def _read_exact(stream, size):
    chunks = []
    remaining = size
    while remaining:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def read_record(stream):
    raw = _read_exact(stream, _INT.size)
    if len(raw) < _INT.size:
        return None
    (pid,) = _INT.unpack(raw)

    raw = _read_exact(stream, _INT.size)
    if len(raw) < _INT.size:
        raise LoadTruncatedError(f"record for pid {pid} ends inside its length field")
    (length,) = _INT.unpack(raw)
    if length < 0:
        raise InvalidRecordError(f"record for pid {pid} has negative length {length}")

    references = _read_exact(stream, length)
    if len(references) < length:
        raise LoadTruncatedError(
            f"record for pid {pid} declares {length} references but only {len(references)} follow"
        )
    for index, page in enumerate(references):
        if page >= VAS_PAGES:
            raise InvalidRecordError(
                f"record for pid {pid} references page {page} at index {index} (max {VAS_PAGES - 1})"
            )
    return ProcessRecord(pid, references)


def iter_records(stream, limit=MAX_PROCESSES):
    count = 0
    while limit is None or count < limit:
        record = read_record(stream)
        if record is None:
            return
        count += 1
        yield record


def encode_record(record):
    return _INT.pack(record.pid) + _INT.pack(len(record.references)) + record.references


def write_records(stream, records):
    for record in records:
        stream.write(encode_record(record))
