"""Fetch DataForSEO task results and resolve the target's rank per task."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional, Sequence, Tuple

from rankgrid.core.config import require_dfs_credentials
from rankgrid.core.matcher import matches
from rankgrid.core.rank import extract_rank, find_match
from rankgrid.etl.transform import to_detail_row, to_result_records
from rankgrid.models import PollOutcome, TargetBusiness, TaskStatus
from rankgrid.vendors import dataforseo

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8
DEFAULT_DETAIL_LIMIT = 20
MAX_DETAIL_LIMIT = 100


def classify(task_id: str, payload: Dict[str, Any], target: Optional[TargetBusiness]) -> PollOutcome:
    """Classify one successful task_get envelope as ok, pending or error."""
    task = dataforseo.task_of(payload)
    status_code = task.get("status_code")
    message = task.get("status_message")

    if status_code == dataforseo.STATUS_OK:
        records = to_result_records(dataforseo.items_of(payload))
        rank = extract_rank(records, target) if records else None
        return PollOutcome(task_id=task_id, status=TaskStatus.OK, rank=rank, items_count=len(records))

    if dataforseo.is_pending_status(status_code, message):
        return PollOutcome(task_id=task_id, status=TaskStatus.PENDING)

    error = dataforseo.cap_message(f"{status_code}: {message or 'DataForSEO error'}")
    logger.warning("Task %s failed: %s", task_id, error)
    return PollOutcome(task_id=task_id, status=TaskStatus.ERROR, error=error)


def poll_task(task_id: str, target: Optional[TargetBusiness], auth: Tuple[str, str]) -> PollOutcome:
    """Poll a single task; provider errors are contained to this task's outcome.

    Transport failures (``requests.RequestException``) propagate so the whole
    cycle is retried instead of marking the task as failed.
    """
    try:
        payload = dataforseo.task_get(task_id, auth)
    except dataforseo.DataForSEOError as exc:
        if dataforseo.is_pending_status(exc.status_code, exc.message):
            return PollOutcome(task_id=task_id, status=TaskStatus.PENDING)
        return PollOutcome(task_id=task_id, status=TaskStatus.ERROR, error=exc.message)
    return classify(task_id, payload, target)


def poll_once(
    task_ids: Sequence[str],
    target: Optional[TargetBusiness],
    auth: Optional[Tuple[str, str]] = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> Dict[str, PollOutcome]:
    """Fetch every task and return outcomes keyed by task id.

    Raises ``requests.RequestException`` when any fetch fails in transport.
    """
    if not task_ids:
        return {}
    auth = auth or require_dfs_credentials()

    workers = max(1, min(max_workers, len(task_ids)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        outcomes = list(executor.map(lambda task_id: poll_task(task_id, target, auth), task_ids))

    results = {outcome.task_id: outcome for outcome in outcomes}
    logger.info(
        "Polled %d tasks: ok=%d pending=%d error=%d",
        len(results),
        sum(1 for o in outcomes if o.status is TaskStatus.OK),
        sum(1 for o in outcomes if o.status is TaskStatus.PENDING),
        sum(1 for o in outcomes if o.status is TaskStatus.ERROR),
    )
    return results


def clamp_limit(limit: Any) -> int:
    try:
        value = int(limit)
    except (TypeError, ValueError):
        value = DEFAULT_DETAIL_LIMIT
    return max(1, min(MAX_DETAIL_LIMIT, value))


def fetch_cell_detail(
    task_id: str,
    target: Optional[TargetBusiness],
    limit: Any = DEFAULT_DETAIL_LIMIT,
    auth: Optional[Tuple[str, str]] = None,
) -> Dict[str, Any]:
    """Return the top ``limit`` competitors of one cell plus the target's rank.

    The rank is resolved against the full result list, not only the rows
    returned, so it can be used to correct an earlier extraction.
    """
    auth = auth or require_dfs_credentials()
    payload = dataforseo.task_get(task_id, auth)
    records = to_result_records(dataforseo.items_of(payload))
    _, rank = find_match(records, target)

    rows = [to_detail_row(record, is_target=matches(record, target)) for record in records[: clamp_limit(limit)]]
    return {"total": len(records), "rank": rank, "items": rows}
