"""Core data models shared by the maps rank grid worker."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass(frozen=True, slots=True)
class Coordinate:
    latitude: float
    longitude: float

    def is_valid(self) -> bool:
        return -90.0 <= self.latitude <= 90.0 and -180.0 <= self.longitude <= 180.0

    def as_location(self, zoom: Optional[str] = None) -> str:
        """Render the provider's ``lat,lng`` or ``lat,lng,15z`` location string."""
        location = f"{self.latitude:.6f},{self.longitude:.6f}"
        if zoom:
            location = f"{location},{zoom}"
        return location


@dataclass(frozen=True, slots=True)
class GridCell:
    row: int
    col: int
    coordinate: Coordinate

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row": self.row,
            "col": self.col,
            "lat": self.coordinate.latitude,
            "lng": self.coordinate.longitude,
        }


@dataclass(frozen=True, slots=True)
class TargetBusiness:
    """The business whose visibility is measured across the grid."""

    place_id: Optional[str] = None
    cid: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    name: Optional[str] = None

    def has_signal(self) -> bool:
        return any((self.place_id, self.cid, self.phone, self.website, self.name))

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "TargetBusiness":
        data = data or {}

        def _text(*keys: str) -> Optional[str]:
            for key in keys:
                value = data.get(key)
                if value is not None and str(value).strip():
                    return str(value).strip()
            return None

        return cls(
            place_id=_text("place_id", "placeId"),
            cid=_text("cid"),
            phone=_text("phone"),
            website=_text("website", "domain", "websiteHost"),
            name=_text("name", "title"),
        )


@dataclass(slots=True)
class ResultRecord:
    """Normalized business entry from one cell's provider result list."""

    rank_group: Optional[int] = None
    rank_absolute: Optional[int] = None
    title: Optional[str] = None
    place_id: Optional[str] = None
    cid: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    rating: Optional[float] = None
    rating_count: Optional[int] = None
    raw: Optional[Dict[str, Any]] = field(default=None, repr=False)


class TaskStatus(str, Enum):
    PENDING = "pending"
    OK = "ok"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not TaskStatus.PENDING


@dataclass(slots=True)
class TaskState:
    cell: GridCell
    task_id: str
    status: TaskStatus = TaskStatus.PENDING
    rank: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "id": self.task_id,
            "row": self.cell.row,
            "col": self.cell.col,
            "lat": self.cell.coordinate.latitude,
            "lng": self.cell.coordinate.longitude,
            "status": self.status.value,
            "rank": self.rank,
        }
        if self.error:
            payload["error"] = self.error
        return payload


@dataclass(slots=True)
class PollOutcome:
    """Classification of one task_get response."""

    task_id: str
    status: TaskStatus
    rank: Optional[int] = None
    error: Optional[str] = None
    items_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.task_id,
            "status": self.status.value,
            "rank": self.rank,
            "items_count": self.items_count,
        }
        if self.error:
            payload["error"] = self.error
        return payload


@dataclass(slots=True)
class Job:
    target: TargetBusiness
    keyword: str
    cells: List[GridCell]
    tasks: List[TaskState]

    @property
    def total(self) -> int:
        return len(self.tasks)

    @property
    def done_count(self) -> int:
        return sum(1 for task in self.tasks if task.status.is_terminal)

    @property
    def is_complete(self) -> bool:
        return self.done_count >= self.total

    @property
    def task_ids(self) -> List[str]:
        return [task.task_id for task in self.tasks]

    def pending_ids(self) -> List[str]:
        return [task.task_id for task in self.tasks if task.status is TaskStatus.PENDING]

    def find_task(self, task_id: str) -> Optional[TaskState]:
        for task in self.tasks:
            if task.task_id == task_id:
                return task
        return None

    def snapshot(self) -> Dict[str, Any]:
        """Return a detached, JSON friendly view of the job."""
        return {
            "keyword": self.keyword,
            "total": self.total,
            "done": self.done_count,
            "complete": self.is_complete,
            "tasks": [task.to_dict() for task in self.tasks],
        }
