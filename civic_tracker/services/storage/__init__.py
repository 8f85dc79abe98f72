from .base import ReportStore
from .memory_store import InMemoryReportStore
from .resolver import get_report_store, set_report_store

__all__ = [
    "ReportStore",
    "InMemoryReportStore",
    "get_report_store",
    "set_report_store",
]
