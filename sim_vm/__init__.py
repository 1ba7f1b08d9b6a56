from .memory import OutOfMemoryError, PhysicalMemory
from .page_table import PageTableEntry, PageTablePage, PageTableFabric
from .process import ProcessState, Process
from .virtual_memory import Translation, AddressTranslator, split_page, join_page
from .scheduler import RoundRobinScheduler
from .loader import LoadError, LoadTruncatedError, InvalidRecordError, ProcessRecord, read_record, iter_records, write_records
from .report import Snapshot, ProcessReport, build_snapshot, format_report
from .simulator import Simulator
from .cli import CommandLineInterface
