"""Manual trigger for sync workflows, with a per-workflow single-flight guard."""

import logging
import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Literal, Optional

from pydantic import BaseModel

from hubspot_sync.connectors.base import StreamOptions
from hubspot_sync.connectors.hubspot import HubSpotConnector
from hubspot_sync.ingest import DEFAULT_INGEST_URL, HttpIngestSink, raw_stream_name
from hubspot_sync.models.config import ConnectorConfig
from hubspot_sync.sync import SyncDriver, SyncState, SyncSummary
from hubspot_sync.transform.normalizer import DEFAULT_PROPERTIES

logger = logging.getLogger(__name__)

DEFAULT_WORKFLOW = "hubspotDataSync"
DEFAULT_WORKFLOW_TIMEOUT = 60.0

WorkflowFn = Callable[[], SyncSummary]
TriggerStatus = Literal["started", "completed", "failed", "timeout"]


class TriggerResponse(BaseModel):
    """Result of a trigger call."""

    success: bool
    workflow_name: str
    execution_id: str
    status: TriggerStatus
    message: str
    start_time: datetime
    end_time: Optional[datetime] = None
    error: Optional[str] = None
    summary: Optional[SyncSummary] = None


def sync_hubspot_deals(
    config: Optional[ConnectorConfig] = None,
    *,
    ingest_url: str = DEFAULT_INGEST_URL,
    timeout: Optional[float] = DEFAULT_WORKFLOW_TIMEOUT,
) -> SyncSummary:
    """Stream every deal from HubSpot into the raw deal ingest stream."""
    config = config or ConnectorConfig.from_env()
    connector = HubSpotConnector(config)
    sink = HttpIngestSink(raw_stream_name("deals"), ingest_url)
    try:
        driver = SyncDriver(
            connector,
            sink,
            object_type="deals",
            options=StreamOptions(properties=list(DEFAULT_PROPERTIES["deals"])),
            timeout=timeout,
        )
        return driver.run(raise_on_failure=False)
    finally:
        sink.close()


def new_execution_id(workflow_name: str) -> str:
    return f"{workflow_name}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


class WorkflowTrigger:
    """
    Runs registered workflows on demand.

    At most one run per workflow name is in flight at a time; a second call
    while one is running gets a failed response. `force=True` bypasses the
    guard and starts another run regardless.
    """

    def __init__(self, workflows: Optional[dict[str, WorkflowFn]] = None):
        self._workflows: dict[str, WorkflowFn] = (
            workflows if workflows is not None else {DEFAULT_WORKFLOW: sync_hubspot_deals}
        )
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def workflow_names(self) -> list[str]:
        return list(self._workflows.keys())

    def _lock_for(self, workflow_name: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(workflow_name, threading.Lock())

    def is_running(self, workflow_name: str) -> bool:
        return self._lock_for(workflow_name).locked()

    def run_sync(
        self,
        workflow_name: str = DEFAULT_WORKFLOW,
        force: bool = False,
        *,
        wait: bool = True,
    ) -> TriggerResponse:
        """
        Trigger a workflow. With wait=False the run happens on a background
        thread and the response status is "started".
        """
        start_time = datetime.now(timezone.utc)
        execution_id = new_execution_id(workflow_name)

        fn = self._workflows.get(workflow_name)
        if fn is None:
            message = f"Unknown workflow: {workflow_name}. Available workflows: {', '.join(self._workflows)}"
            logger.error(message)
            return self._failed(workflow_name, execution_id, start_time, message)

        lock = self._lock_for(workflow_name)
        acquired = lock.acquire(blocking=False)
        if not acquired and not force:
            message = f"Workflow {workflow_name} is already running"
            logger.warning("%s; use force to start another run", message)
            return self._failed(workflow_name, execution_id, start_time, message)
        if not acquired:
            logger.warning("Workflow %s already running; forcing a concurrent run", workflow_name)

        logger.info("Triggering workflow: %s (executionId: %s)", workflow_name, execution_id)
        if not wait:
            thread = threading.Thread(
                target=self._execute,
                args=(fn, workflow_name, execution_id, start_time, lock if acquired else None),
                name=execution_id,
                daemon=True,
            )
            thread.start()
            return TriggerResponse(
                success=True,
                workflow_name=workflow_name,
                execution_id=execution_id,
                status="started",
                message=f"Workflow {workflow_name} triggered successfully",
                start_time=start_time,
            )
        return self._execute(fn, workflow_name, execution_id, start_time, lock if acquired else None)

    def _execute(
        self,
        fn: WorkflowFn,
        workflow_name: str,
        execution_id: str,
        start_time: datetime,
        lock: Optional[threading.Lock],
    ) -> TriggerResponse:
        try:
            summary = fn()
        except Exception as e:
            logger.exception("Workflow %s (%s) failed", workflow_name, execution_id)
            return self._failed(workflow_name, execution_id, start_time, f"Workflow failed: {e}", error=str(e))
        finally:
            if lock is not None:
                lock.release()

        end_time = datetime.now(timezone.utc)
        if summary.state == SyncState.FAILED:
            status: TriggerStatus = "timeout" if summary.timed_out else "failed"
            logger.error("Workflow %s (%s) ended with status %s: %s", workflow_name, execution_id, status, summary.error)
            return TriggerResponse(
                success=False,
                workflow_name=workflow_name,
                execution_id=execution_id,
                status=status,
                message=f"Workflow {workflow_name} {status}: {summary.error}",
                start_time=start_time,
                end_time=end_time,
                error=summary.error,
                summary=summary,
            )

        logger.info("Workflow %s (%s) completed", workflow_name, execution_id)
        return TriggerResponse(
            success=True,
            workflow_name=workflow_name,
            execution_id=execution_id,
            status="completed",
            message=f"Workflow {workflow_name} completed: {summary.succeeded}/{summary.total} records ingested",
            start_time=start_time,
            end_time=end_time,
            summary=summary,
        )

    def _failed(
        self,
        workflow_name: str,
        execution_id: str,
        start_time: datetime,
        message: str,
        error: Optional[str] = None,
    ) -> TriggerResponse:
        return TriggerResponse(
            success=False,
            workflow_name=workflow_name,
            execution_id=execution_id,
            status="failed",
            message=message,
            start_time=start_time,
            end_time=datetime.now(timezone.utc),
            error=error or message,
        )
