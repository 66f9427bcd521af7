"""Execution status of the external workflow automations, read through the relay."""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx

from .config import ProxyConfig, WorkflowDefinition
from .models import Row, WorkflowStatus
from .poller import PeriodicTask

logger = logging.getLogger(__name__)

RUNNING = "running"
SUCCESS = "success"
ERROR = "error"
WAITING = "waiting"
CANCELED = "canceled"
NEW = "new"

_EXPLICIT_STATUSES = {
    "running": RUNNING,
    "success": SUCCESS,
    "error": ERROR,
    "failed": ERROR,
    "crashed": ERROR,
    "waiting": WAITING,
    "canceled": CANCELED,
    "new": NEW,
}

# A manual execution stopped this recently may still be running (approximate)
MANUAL_RECENT_STOP_SECONDS = 5 * 60
# Typical execution length used for the progress estimate
EXPECTED_RUN_SECONDS = 2 * 60


class WorkflowProxyError(Exception):
    """The relay or the upstream workflow API returned an error."""


def _parse_timestamp(value: Any) -> Optional[float]:
    if not value:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def classify_execution(execution: Row, now: float) -> str:
    """
    Derive one of running/success/error/waiting/canceled/new for an execution.

    An explicit ``status`` from the API wins. Otherwise the state is inferred
    from ``waitTill``, ``finished`` and ``stoppedAt``. A manual execution that
    stopped unfinished within the last 5 minutes is reported as running, so a
    genuinely canceled manual run can read as running for up to 5 minutes.
    """
    status = execution.get("status")
    if isinstance(status, str) and status.lower() in _EXPLICIT_STATUSES:
        return _EXPLICIT_STATUSES[status.lower()]

    if execution.get("waitTill"):
        return WAITING
    if execution.get("finished"):
        return SUCCESS

    stopped_at = _parse_timestamp(execution.get("stoppedAt"))
    if stopped_at is None:
        return RUNNING

    if execution.get("mode") == "manual":
        if now - stopped_at < MANUAL_RECENT_STOP_SECONDS:
            return RUNNING
        return CANCELED
    return ERROR


def estimate_progress(state: Optional[str], started_at: Any, now: float) -> int:
    """Rough 0-100 progress for a progress bar."""
    if state in (NEW, WAITING):
        return 10
    if state == RUNNING:
        started = _parse_timestamp(started_at)
        elapsed = max(0.0, now - started) if started is not None else 0.0
        return round(min(90.0, 10 + (elapsed / EXPECTED_RUN_SECONDS) * 80))
    if state == SUCCESS:
        return 100
    return 0


class WorkflowProxyClient:
    """Talks to the workflow-automation API through the backend relay."""

    def __init__(self, config: ProxyConfig, client: Optional[httpx.Client] = None):
        self.config = config
        self.client = client or httpx.Client(timeout=config.timeout)

    def request(self, path: str, method: str = "GET") -> Dict[str, Any]:
        """
        Ask the relay to call ``method path`` on the upstream API.

        Raises:
            WorkflowProxyError: On transport errors, non-2xx replies or invalid JSON.
        """
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "apikey": self.config.api_key,
            "Content-Type": "application/json",
        }
        try:
            response = self.client.post(
                self.config.url,
                json={"path": path, "method": method},
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise WorkflowProxyError(f"Relay request {method} {path} failed: {e}") from e

        if response.status_code >= 400:
            raise WorkflowProxyError(
                f"Relay returned {response.status_code} for {method} {path}: {response.text[:200]}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise WorkflowProxyError(f"Relay returned invalid JSON for {method} {path}") from e

    def list_executions(self, workflow_id: str, limit: int = 1) -> List[Row]:
        data = self.request(f"/executions?workflowId={workflow_id}&limit={limit}")
        executions = data.get("data") if isinstance(data, dict) else None
        return executions or []

    def test_connection(self) -> bool:
        try:
            self.request("/workflows?limit=1")
        except WorkflowProxyError as e:
            logger.warning(f"Workflow relay connection test failed: {e}")
            return False
        return True

    def close(self) -> None:
        self.client.close()


class WorkflowStatusMonitor(PeriodicTask):
    """Polls the last execution of each configured workflow."""

    name = "workflows"

    def __init__(
        self,
        client: WorkflowProxyClient,
        workflows: List[WorkflowDefinition],
        interval: float = 10.0,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(interval, clock)
        self.client = client
        self.workflows = list(workflows)
        self.error: Optional[str] = None
        self._statuses: Dict[str, WorkflowStatus] = {
            wf.id: WorkflowStatus(id=wf.id, name=wf.name) for wf in self.workflows
        }

    @property
    def statuses(self) -> List[WorkflowStatus]:
        return [self._statuses[wf.id] for wf in self.workflows]

    def _fetch(self) -> List[WorkflowStatus]:
        errors = []
        for workflow in self.workflows:
            try:
                executions = self.client.list_executions(workflow.id)
            except WorkflowProxyError as e:
                logger.error(f"Error fetching executions for workflow {workflow.name}: {e}")
                errors.append(f"{workflow.name}: {e}")
                continue
            self._statuses[workflow.id] = self._build_status(workflow, executions)

        self.error = "; ".join(errors) if errors else None
        return self.statuses

    def _build_status(self, workflow: WorkflowDefinition, executions: List[Row]) -> WorkflowStatus:
        now = self.clock()
        status = WorkflowStatus(id=workflow.id, name=workflow.name, checked_at=now)
        if not executions:
            return status
        last = executions[0]
        status.last_execution = last
        status.state = classify_execution(last, now)
        status.progress = estimate_progress(status.state, last.get("startedAt"), now)
        logger.debug(f"Workflow {workflow.name}: {status.state} ({status.progress}%)")
        return status
