"""Timeout-bounded polling of metrics tables.

Confirms that the monitoring extension is writing telemetry by polling one or
more metrics tables until a matching row appears or the time budget runs out.

Polling states: IDLE -> POLLING -> {SATISFIED, TIMED_OUT}. Each failed attempt
writes one progress glyph, sleeps for the poll interval and re-checks the
deadline. A timeout is a normal negative result, not an error.

Modes:
- Single table: explicit table name, or discovery by name prefix (re-run on
  every attempt since tables can appear while waiting)
- Diagnostics: a fixed, OS-dependent list of tables, polled sequentially
  against one shared deadline; stops at the first table that times out

Clock, sleep and "now" are injectable so tests can simulate elapsed time.
"""

import logging
import time
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from azure.core.exceptions import AzureError, ResourceNotFoundError

from aemcheck.models import TableOutcome, VerificationQuery, VerificationResult
from aemcheck.output_sink import OutputSink
from aemcheck.storage_plane import StoragePlane
from aemcheck.table_filter import diagnostics_filter

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = timedelta(seconds=5)
DEFAULT_TIMEOUT = timedelta(minutes=15)
DEFAULT_SEARCH_WINDOW = timedelta(minutes=5)
METRICS_TABLE_PREFIX = "WADMetricsPT1M"

# Metrics tables written by the diagnostics extension, per OS type
DIAGNOSTICS_TABLES: dict[str, tuple[str, ...]] = {
    "Windows": ("WADMetricsPT1HP10DV2S", "WADMetricsPT1MP10DV2S"),
    "Linux": ("LinuxCpuVer2v0", "LinuxDiskVer2v0", "LinuxMemoryVer2v0"),
}


class PollState(Enum):
    """Polling state of one table."""

    IDLE = "idle"
    POLLING = "polling"
    SATISFIED = "satisfied"
    TIMED_OUT = "timed_out"


class TableDiscoveryPolicy:
    """Policies for picking a metrics table when its exact name is unknown."""

    @staticmethod
    def first_match_by_prefix(table_names: Iterable[str], prefix: str) -> str | None:
        """Return the first table (in listing order) whose name starts with prefix.

        Table listings are returned in lexical order, so the first match is the
        lexically smallest name with the prefix.
        """
        return next((name for name in table_names if name.startswith(prefix)), None)


class DiagnosticsVerifier:
    """Poll metrics tables until monitoring data shows up."""

    def __init__(
        self,
        plane: StoragePlane,
        sink: OutputSink,
        poll_interval: timedelta = DEFAULT_POLL_INTERVAL,
        search_window: timedelta = DEFAULT_SEARCH_WINDOW,
        table_prefix: str = METRICS_TABLE_PREFIX,
        diagnostics_tables: Mapping[str, Iterable[str]] | None = None,
        discovery: Callable[[Iterable[str], str], str | None] = (
            TableDiscoveryPolicy.first_match_by_prefix
        ),
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        utcnow: Callable[[], datetime] | None = None,
    ) -> None:
        self.plane = plane
        self.sink = sink
        self.poll_interval = poll_interval
        self.search_window = search_window
        self.table_prefix = table_prefix
        self.diagnostics_tables = {
            os_type: tuple(tables)
            for os_type, tables in (diagnostics_tables or DIAGNOSTICS_TABLES).items()
        }
        self.discovery = discovery
        self._clock = clock
        self._sleep = sleep
        self._utcnow = utcnow or (lambda: datetime.now(timezone.utc))

    def _poll(
        self,
        attempt: Callable[[], bool],
        wait_glyph: str,
        started: float,
        timeout: timedelta,
    ) -> PollState:
        """Run attempts until one succeeds or the shared deadline passes.

        The first attempt always runs, even if the deadline already passed.
        """
        state = PollState.POLLING
        while state is PollState.POLLING:
            if attempt():
                state = PollState.SATISFIED
                break

            self.sink.host(wait_glyph, new_line=False)
            self._sleep(self.poll_interval.total_seconds())
            if self._clock() - started >= timeout.total_seconds():
                state = PollState.TIMED_OUT
        return state

    @staticmethod
    def _has_rows(table_client: Any, filter_string: str) -> bool:
        """Check whether any row matches. A missing table has no rows."""
        try:
            pager = table_client.query_entities(query_filter=filter_string, results_per_page=1)
            return next(iter(pager), None) is not None
        except ResourceNotFoundError:
            return False

    def _target_table(self, service: Any, query: VerificationQuery) -> str | None:
        """Resolve the table to poll for this attempt; None when not present yet."""
        if not query.use_discovered_table:
            return query.table_name
        try:
            names = [table.name for table in service.list_tables()]
        except AzureError as e:
            logger.debug(f"Listing tables failed: {type(e).__name__}: {e}")
            return None
        return self.discovery(names, self.table_prefix)

    def check_table_content(self, query: VerificationQuery) -> VerificationResult:
        """Poll one table until a row matches the query filter.

        Args:
            query: Table selection, filter, progress glyph and timeout

        Returns:
            VerificationResult with one table outcome
        """
        if not query.account_name:
            return VerificationResult(succeeded=False)

        service = self.plane.table_service(query.account_name)
        started = self._clock()
        polled: list[str] = []

        def attempt() -> bool:
            table_name = self._target_table(service, query)
            if not table_name:
                return False
            polled.append(table_name)
            return self._has_rows(service.get_table_client(table_name), query.filter_string)

        state = self._poll(attempt, query.wait_glyph, started, query.timeout)
        found = state is PollState.SATISFIED
        label = polled[-1] if polled else (query.table_name or self.table_prefix)
        logger.debug(f"Table check for {label} finished in state {state.value}")
        return VerificationResult(succeeded=found, table_outcomes=(TableOutcome(label, found),))

    def tables_for(self, os_type: str) -> tuple[str, ...]:
        """Get the diagnostics tables for an OS type (case-insensitive).

        Raises:
            ValueError: If the OS type is unknown
        """
        for known, tables in self.diagnostics_tables.items():
            if known.lower() == (os_type or "").lower():
                return tables
        valid = ", ".join(sorted(self.diagnostics_tables))
        raise ValueError(f"Unknown OS type: '{os_type}'. Valid types: {valid}")

    def check_diagnostics_tables(
        self,
        account_name: str,
        resource_id: str,
        host: str,
        wait_glyph: str,
        os_type: str,
        timeout: timedelta = DEFAULT_TIMEOUT,
    ) -> VerificationResult:
        """Poll every diagnostics table of the OS type for rows of this VM.

        All tables share one deadline computed at the start of the call.

        Args:
            account_name: Diagnostics storage account
            resource_id: Deployment id written by the extension
            host: Host name written by the extension
            wait_glyph: Progress glyph written after each failed attempt
            os_type: "Windows" or "Linux"
            timeout: Total time budget for all tables

        Returns:
            VerificationResult; succeeded only if every table had matching rows

        Raises:
            ValueError: If the OS type is unknown
        """
        tables = self.tables_for(os_type)
        if not account_name:
            return VerificationResult(succeeded=True)

        service = self.plane.table_service(account_name)
        started = self._clock()
        filter_string = diagnostics_filter(resource_id, host, self._utcnow() - self.search_window)

        outcomes: list[TableOutcome] = []
        for table_name in tables:
            table_client = service.get_table_client(table_name)
            state = self._poll(
                lambda client=table_client: self._has_rows(client, filter_string),
                wait_glyph,
                started,
                timeout,
            )
            found = state is PollState.SATISFIED
            outcomes.append(TableOutcome(table_name, found))
            if not found:
                self.sink.verbose("PerfCounter Table {0} not found", table_name)
                break

        succeeded = all(outcome.found for outcome in outcomes)
        return VerificationResult(succeeded=succeeded, table_outcomes=tuple(outcomes))


__all__ = [
    "DEFAULT_POLL_INTERVAL",
    "DEFAULT_SEARCH_WINDOW",
    "DEFAULT_TIMEOUT",
    "DIAGNOSTICS_TABLES",
    "METRICS_TABLE_PREFIX",
    "DiagnosticsVerifier",
    "PollState",
    "TableDiscoveryPolicy",
]
