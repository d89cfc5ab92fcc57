"""Sync orchestration: connect -> stream -> forward each record -> disconnect."""

import logging
import time
from contextlib import closing, contextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterator, Optional

from pydantic import BaseModel

from hubspot_sync.connectors.base import BaseConnector, StreamOptions
from hubspot_sync.errors import ConnectorError, ForwardingError, RemoteUnavailable
from hubspot_sync.ingest import IngestSink
from hubspot_sync.models.raw import RawRecord
from hubspot_sync.store import RawRecordStore
from hubspot_sync.transform.stage import TransformStage

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    DISCONNECTING = "disconnecting"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncSummary(BaseModel):
    """Counts for one run. Reported even when the run aborts part-way."""

    object_type: str
    state: SyncState = SyncState.IDLE
    total: int = 0
    succeeded: int = 0
    errors: int = 0
    normalized: int = 0
    dead_lettered: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    duration_seconds: float = 0.0
    timed_out: bool = False
    error: Optional[str] = None


class SyncDriver:
    """
    Runs one sync of one object type.

    Raw records are forwarded to `sink` one at a time. A failed write
    (ForwardingError or any other sink exception) is counted and the loop
    moves on; it is not dead-lettered. When a TransformStage is attached,
    each raw record is also normalized and the result written to
    `normalized_sink`; normalization failures go to the stage's dead-letter
    router.

    Connector failures (AuthFailure, RemoteUnavailable, ...) move the driver
    to FAILED. disconnect() is attempted on every exit path.
    """

    def __init__(
        self,
        connector: BaseConnector,
        sink: IngestSink,
        *,
        object_type: str = "deals",
        options: Optional[StreamOptions] = None,
        transform: Optional[TransformStage] = None,
        normalized_sink: Optional[IngestSink] = None,
        timeout: Optional[float] = None,
        progress_every: int = 50,
        run_store: Optional[RawRecordStore] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            connector: initialized (not yet connected) connector
            sink: ingestion boundary for raw records
            object_type: contacts | companies | deals | tickets | engagements
            options: stream options (properties, page size)
            transform: optional normalize + dead-letter stage
            normalized_sink: where normalized records go (requires transform)
            timeout: overall run timeout in seconds, checked between records
            progress_every: log progress every N records
            run_store: optional store for run history
            clock: monotonic clock, injectable for tests
        """
        self._connector = connector
        self._sink = sink
        self._object_type = object_type
        self._options = options
        self._transform = transform
        self._normalized_sink = normalized_sink
        self._timeout = timeout
        self._progress_every = max(1, progress_every)
        self._run_store = run_store
        self._clock = clock
        self._state = SyncState.IDLE
        self.summary = SyncSummary(object_type=object_type)

    @property
    def state(self) -> SyncState:
        return self._state

    def _set_state(self, state: SyncState) -> None:
        logger.info("Sync %s: %s -> %s", self._object_type, self._state.value, state.value)
        self._state = state
        self.summary.state = state

    @contextmanager
    def _session(self) -> Iterator[None]:
        """Connect; always attempt disconnect on the way out, even after a failure."""
        try:
            self._set_state(SyncState.CONNECTING)
            self._connector.connect()
            yield
        finally:
            try:
                self._connector.disconnect()
            except Exception:
                logger.exception("Disconnect failed during %s sync cleanup", self._object_type)

    def run(self, *, raise_on_failure: bool = True) -> SyncSummary:
        """
        Execute the sync. Returns the summary; on connector failure the
        summary (with counts up to the abort point) is still available as
        `self.summary` and the error is re-raised unless raise_on_failure=False.
        """
        if self._state != SyncState.IDLE:
            raise RuntimeError("SyncDriver instances are single-use")

        summary = self.summary
        summary.started_at = datetime.now(timezone.utc)
        started = self._clock()
        run_record = self._run_store.start_run(self._object_type) if self._run_store else None
        logger.info("Starting HubSpot %s sync", self._object_type)

        try:
            with self._session():
                self._set_state(SyncState.STREAMING)
                with closing(self._connector.stream(self._object_type, self._options)) as records:
                    for raw in records:
                        self._handle(raw)
                        self._check_deadline(started)
                self._set_state(SyncState.DISCONNECTING)
            self._set_state(SyncState.COMPLETED)
        except ConnectorError as e:
            self._fail(e)
            if raise_on_failure:
                raise
        except Exception as e:
            self._fail(e)
            raise
        finally:
            summary.finished_at = datetime.now(timezone.utc)
            summary.duration_seconds = round(self._clock() - started, 3)
            if self._transform is not None:
                summary.dead_lettered = self._transform.router.routed
            if run_record is not None and self._run_store is not None:
                self._run_store.finish_run(
                    run_record.id,
                    items_total=summary.total,
                    items_succeeded=summary.succeeded,
                    items_failed=summary.errors,
                    items_dead_lettered=summary.dead_lettered,
                    status=summary.state.value,
                    error=summary.error,
                )
            logger.info(
                "Sync %s finished (%s) in %.1fs: %d total, %d succeeded, %d errors, %d dead-lettered",
                self._object_type, summary.state.value, summary.duration_seconds,
                summary.total, summary.succeeded, summary.errors, summary.dead_lettered,
            )
        return summary

    def _fail(self, error: Exception) -> None:
        logger.error("HubSpot %s sync failed: %s", self._object_type, error)
        self.summary.error = str(error)
        self._set_state(SyncState.FAILED)

    def _check_deadline(self, started: float) -> None:
        if self._timeout is None:
            return
        elapsed = self._clock() - started
        if elapsed > self._timeout:
            self.summary.timed_out = True
            raise RemoteUnavailable(f"Sync timed out after {elapsed:.1f}s (limit {self._timeout}s)")

    def _handle(self, raw: RawRecord) -> None:
        summary = self.summary
        summary.total += 1
        try:
            self._sink.write(raw)
        except ForwardingError as e:
            summary.errors += 1
            logger.error("Error ingesting %s %s: %s", self._object_type, raw.record_key, e)
        except Exception:
            summary.errors += 1
            logger.exception("Unexpected sink error ingesting %s %s", self._object_type, raw.record_key)
        else:
            summary.succeeded += 1

        if self._transform is not None:
            record = self._transform.process(raw)
            if record is not None:
                summary.normalized += 1
                if self._normalized_sink is not None:
                    try:
                        self._normalized_sink.write(record)
                    except ForwardingError as e:
                        summary.errors += 1
                        logger.error("Error writing normalized %s %s: %s", self._object_type, record.id, e)
                    except Exception:
                        summary.errors += 1
                        logger.exception("Unexpected sink error writing normalized %s %s", self._object_type, record.id)

        if summary.total % self._progress_every == 0:
            logger.info(
                "Processed %d %s total (%d successful, %d errors)",
                summary.total, self._object_type, summary.succeeded, summary.errors,
            )
