"""Client utilities for the DataForSEO Google Maps SERP task API."""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

_BASE_URL = "https://api.dataforseo.com/v3/serp/google/maps"
REQUEST_TIMEOUT = 30
MAX_MESSAGE_LENGTH = 500

STATUS_OK = 20000
STATUS_TASK_CREATED = 20100
# Task handed / in queue / not found yet: the result is simply not ready.
PENDING_STATUS_CODES = {40601, 40602, 40401, 40404}
_PENDING_MARKERS = ("in queue", "processing", "not found", "handed")


def _build_session() -> requests.Session:
    # Only task_get is retried by the adapter; replaying task_post would create duplicate tasks.
    session = requests.Session()
    retries = Retry(
        total=2,
        backoff_factor=0.5,
        status_forcelist=(500, 502, 503, 504),
        allowed_methods=("GET",),
    )
    session.mount("https://", HTTPAdapter(max_retries=retries))
    return session


_SESSION = _build_session()


class DataForSEOError(RuntimeError):
    """Raised when DataForSEO returns a non-successful response."""

    def __init__(self, message: str, status_code: Optional[int] = None, http_status: Optional[int] = None):
        self.message = cap_message(message)
        self.status_code = status_code
        self.http_status = http_status
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"dfs_status_code": self.status_code, "dfs_message": self.message}


def cap_message(value: Any, limit: int = MAX_MESSAGE_LENGTH) -> str:
    return str(value)[:limit]


def is_pending_status(status_code: Optional[int], message: Optional[str]) -> bool:
    if status_code in PENDING_STATUS_CODES or status_code == STATUS_TASK_CREATED:
        return True
    text = (message or "").lower()
    return any(marker in text for marker in _PENDING_MARKERS)


def _read_payload(response: requests.Response) -> Dict[str, Any]:
    try:
        payload = response.json()
    except ValueError as exc:
        raise DataForSEOError(
            f"DataForSEO returned a non-JSON body: {response.text[:200]}",
            http_status=response.status_code,
        ) from exc
    if not isinstance(payload, dict):
        raise DataForSEOError("DataForSEO returned an unexpected payload", http_status=response.status_code)
    return payload


def _check_envelope(response: requests.Response, payload: Dict[str, Any], action: str) -> None:
    status_code = payload.get("status_code")
    if 200 <= response.status_code < 300 and status_code == STATUS_OK:
        return
    message = payload.get("status_message") or payload.get("error") or f"HTTP {response.status_code}"
    logger.error("%s failed: http=%s status=%s message=%s", action, response.status_code, status_code, message)
    raise DataForSEOError(message, status_code=status_code, http_status=response.status_code)


def task_post(tasks: Sequence[Dict[str, Any]], auth: Tuple[str, str]) -> Dict[str, Any]:
    """Submit task descriptors; raises DataForSEOError when the batch is rejected."""
    response = _SESSION.post(f"{_BASE_URL}/task_post", json=list(tasks), auth=auth, timeout=REQUEST_TIMEOUT)
    payload = _read_payload(response)
    _check_envelope(response, payload, "task_post")
    return payload


def task_ids_of(payload: Dict[str, Any]) -> List[Optional[str]]:
    """Task ids in submission order; ``None`` for tasks the provider did not create."""
    ids: List[Optional[str]] = []
    for task in payload.get("tasks") or []:
        if not isinstance(task, dict):
            ids.append(None)
            continue
        if task.get("status_code") not in (None, STATUS_TASK_CREATED, STATUS_OK):
            logger.warning(
                "task_post rejected a task: status=%s message=%s", task.get("status_code"), task.get("status_message")
            )
            ids.append(None)
            continue
        ids.append(task.get("id"))
    return ids


def task_get(task_id: str, auth: Tuple[str, str]) -> Dict[str, Any]:
    """Fetch one task's advanced result envelope."""
    response = _SESSION.get(f"{_BASE_URL}/task_get/advanced/{task_id}", auth=auth, timeout=REQUEST_TIMEOUT)
    payload = _read_payload(response)
    _check_envelope(response, payload, "task_get")
    return payload


def task_of(payload: Dict[str, Any]) -> Dict[str, Any]:
    tasks = payload.get("tasks") or []
    first = tasks[0] if tasks else None
    return first if isinstance(first, dict) else {}


def items_of(payload: Dict[str, Any]) -> List[Any]:
    results = task_of(payload).get("result") or []
    first = results[0] if results else None
    if not isinstance(first, dict):
        return []
    return first.get("items") or []
