"""Turn grid cells into DataForSEO Maps tasks and submit them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from rankgrid.core.config import get_settings, require_dfs_credentials
from rankgrid.core.grid import build_grid, validate_grid_size
from rankgrid.models import Coordinate, GridCell, Job, TargetBusiness, TaskState
from rankgrid.vendors import dataforseo

logger = logging.getLogger(__name__)

# DataForSEO accepts at most 100 tasks per task_post call.
MAX_TASKS_PER_POST = 100


class SubmissionError(dataforseo.DataForSEOError):
    """Raised when the provider does not accept every task of a job."""


@dataclass(frozen=True)
class SubmitOptions:
    language_code: str = "en"
    device: str = "desktop"
    depth: int = 50
    zoom: Optional[str] = "15z"
    country_code: str = "us"

    def __post_init__(self) -> None:
        if int(self.depth) < 1:
            raise ValueError("depth must be a positive integer")

    @classmethod
    def from_settings(cls, **overrides: Any) -> "SubmitOptions":
        settings = get_settings()
        values: Dict[str, Any] = {
            "language_code": settings.language_code,
            "device": settings.device,
            "depth": settings.search_depth,
            "zoom": settings.zoom or None,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)


def build_task(keyword: str, cell: GridCell, index: int, options: SubmitOptions, tag_prefix: str = "grid") -> Dict[str, Any]:
    return {
        "keyword": keyword,
        "location_coordinate": cell.coordinate.as_location(options.zoom),
        "device": options.device,
        "language_code": options.language_code,
        "depth": int(options.depth),
        "search_param": f"hl={options.language_code}&gl={options.country_code}&num={int(options.depth)}",
        "tag": f"{tag_prefix}_{index}",
    }


def submit(
    keyword: str,
    cells: Sequence[GridCell],
    options: SubmitOptions,
    auth: Optional[Tuple[str, str]] = None,
    tag_prefix: str = "grid",
) -> List[TaskState]:
    """Submit one task per cell, preserving cell order in the returned states.

    Batches already accepted before a rejected one are not rolled back.
    """
    if not keyword or not keyword.strip():
        raise ValueError("Keyword must be provided.")
    if not cells:
        raise ValueError("At least one grid cell is required.")
    auth = auth or require_dfs_credentials()

    keyword = keyword.strip()
    tasks = [build_task(keyword, cell, index, options, tag_prefix) for index, cell in enumerate(cells)]

    states: List[TaskState] = []
    for start in range(0, len(tasks), MAX_TASKS_PER_POST):
        batch = tasks[start : start + MAX_TASKS_PER_POST]
        batch_cells = cells[start : start + MAX_TASKS_PER_POST]
        logger.info("Posting %d DataForSEO tasks (offset %d) for keyword=%s", len(batch), start, keyword)
        try:
            payload = dataforseo.task_post(batch, auth)
        except dataforseo.DataForSEOError as exc:
            raise SubmissionError(exc.message, status_code=exc.status_code, http_status=exc.http_status) from exc

        ids = dataforseo.task_ids_of(payload)
        if len(ids) != len(batch) or not all(ids):
            accepted = sum(1 for task_id in ids if task_id)
            raise SubmissionError(
                f"DataForSEO accepted {accepted} of {len(batch)} tasks",
                status_code=payload.get("status_code"),
            )
        states.extend(TaskState(cell=cell, task_id=task_id) for cell, task_id in zip(batch_cells, ids))

    logger.info("Submitted %d tasks for keyword=%s", len(states), keyword)
    return states


def start_job(
    keyword: str,
    center: Coordinate,
    grid_size: Any,
    spacing_meters: float,
    target: TargetBusiness,
    options: Optional[SubmitOptions] = None,
    auth: Optional[Tuple[str, str]] = None,
) -> Job:
    """Validate operator input, build the grid and submit it as a new Job."""
    if not keyword or not str(keyword).strip():
        raise ValueError("Keyword must be provided.")
    size = validate_grid_size(grid_size)
    auth = auth or require_dfs_credentials()
    options = options or SubmitOptions.from_settings()

    cells = build_grid(center, size, float(spacing_meters))
    tag_prefix = f"grid_{size}_{round(float(spacing_meters))}"
    tasks = submit(str(keyword), cells, options, auth=auth, tag_prefix=tag_prefix)
    return Job(target=target, keyword=str(keyword).strip(), cells=cells, tasks=tasks)
