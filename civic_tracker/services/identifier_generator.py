"""
Report number generator.

Format: <PREFIX>-<YYYYMMDD>-<NNNNNN>, e.g. CIV-20240115-000042.

The date is the UTC day (the bucket); the sequence is an atomic
increment of that bucket's counter in the report store, so numbers stay
unique across processes and sort in creation order within a day.
"""

from datetime import datetime, timezone
from typing import Callable, NamedTuple
import logging
import re

from civic_tracker.core.errors import IdentifierUnavailableError, StoreFailureError
from civic_tracker.services.storage import ReportStore

logger = logging.getLogger(__name__)

SEQUENCE_WIDTH = 6
REPORT_NUMBER_PATTERN = re.compile(r"^(?P<prefix>[A-Z]+)-(?P<bucket>\d{8})-(?P<sequence>\d{6,})$")


class ParsedReportNumber(NamedTuple):
    prefix: str
    bucket: str
    sequence: int


def parse_report_number(report_number: str) -> ParsedReportNumber:
    match = REPORT_NUMBER_PATTERN.match(report_number or "")
    if not match:
        raise ValueError(f"Malformed report number: {report_number!r}")
    return ParsedReportNumber(match["prefix"], match["bucket"], int(match["sequence"]))


class ReportNumberGenerator:
    """Hands out report numbers backed by the store's per-day counters."""

    def __init__(
        self,
        store: ReportStore,
        prefix: str = "CIV",
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)
    ):
        if not re.fullmatch(r"[A-Z]+", prefix):
            raise ValueError(f"Report number prefix must be upper-case letters: {prefix!r}")
        self.store = store
        self.prefix = prefix
        self.clock = clock

    def bucket(self) -> str:
        return self.clock().astimezone(timezone.utc).strftime("%Y%m%d")

    def next(self) -> str:
        """
        Return a report number never returned before.

        Raises:
            IdentifierUnavailableError: The counter could not be incremented.
                Callers must not persist a report without a number.
        """
        bucket = self.bucket()
        try:
            sequence = self.store.increment_counter(bucket)
        except StoreFailureError as e:
            logger.error(f"Report number counter unavailable for bucket {bucket}: {e}")
            raise IdentifierUnavailableError(
                f"Report number counter unavailable for {bucket}; retry the submission"
            ) from e
        return f"{self.prefix}-{bucket}-{sequence:0{SEQUENCE_WIDTH}d}"
