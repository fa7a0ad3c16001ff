"""CLI job that runs a full rank grid and prints the rank matrix."""

import argparse
import logging
from typing import Dict, List, Optional

import requests

from rankgrid.core.config import ConfigError, get_settings
from rankgrid.core.grid import DEFAULT_GRID_SIZE, DEFAULT_SPACING_METERS, center_index
from rankgrid.jobs.coordinator import JobCoordinator
from rankgrid.jobs.submission import SubmissionError, SubmitOptions, start_job
from rankgrid.models import Coordinate, Job, TargetBusiness, TaskStatus
from rankgrid.vendors.dataforseo import DataForSEOError

logger = logging.getLogger(__name__)

RANK_BANDS = ("top1", "top3", "top10", "top20", "outside")


def rank_band(rank: Optional[int]) -> str:
    """Display band for a rank, from best to not found."""
    if rank is None:
        return "outside"
    if rank == 1:
        return "top1"
    if rank <= 3:
        return "top3"
    if rank <= 10:
        return "top10"
    if rank <= 20:
        return "top20"
    return "outside"


def format_matrix(job: Job) -> List[str]:
    """Render ranks as rows of the grid: ``-`` not found, ``!`` error, ``?`` pending."""
    size = int(round(len(job.cells) ** 0.5))
    grid = [["?"] * size for _ in range(size)]
    for task in job.tasks:
        if task.status is TaskStatus.ERROR:
            label = "!"
        elif task.status is TaskStatus.PENDING:
            label = "?"
        else:
            label = "-" if task.rank is None else str(task.rank)
        grid[task.cell.row][task.cell.col] = label
    # Row 0 is the southernmost row; print north up.
    return [" ".join(label.rjust(3) for label in row) for row in reversed(grid)]


def band_counts(job: Job) -> Dict[str, int]:
    counts = {band: 0 for band in RANK_BANDS}
    for task in job.tasks:
        if task.status is TaskStatus.OK:
            counts[rank_band(task.rank)] += 1
    return counts


def run_grid_job(
    *,
    keyword: str,
    latitude: float,
    longitude: float,
    grid_size: int,
    spacing: float,
    target: TargetBusiness,
    depth: Optional[int] = None,
    max_attempts: Optional[int] = None,
    coordinator: Optional[JobCoordinator] = None,
) -> Job:
    if not target.has_signal():
        logger.warning("No target identifiers given; every cell will report 'not found'.")

    options = SubmitOptions.from_settings(depth=depth)
    job = start_job(keyword, Coordinate(latitude, longitude), grid_size, spacing, target, options=options)
    logger.info("Submitted %d tasks for keyword=%s", job.total, job.keyword)

    coordinator = coordinator or JobCoordinator.from_settings()
    if max_attempts is not None:
        coordinator.max_attempts = max_attempts
    coordinator.run(job)

    center_id = job.task_ids[center_index(job.cells)]
    if target.has_signal() and job.find_task(center_id).status is TaskStatus.OK:
        try:
            coordinator.refresh_detail(center_id)
        except (DataForSEOError, requests.RequestException) as exc:
            logger.warning("Could not refresh center cell detail for %s: %s", center_id, exc)

    logger.info("Completed grid: done=%d/%d", job.done_count, job.total)
    return job


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Check local map ranks across a grid around a business")
    parser.add_argument("--keyword", required=True, help="Search keyword, e.g. 'plumber'")
    parser.add_argument("--lat", dest="latitude", type=float, required=True, help="Grid center latitude")
    parser.add_argument("--lng", dest="longitude", type=float, required=True, help="Grid center longitude")
    parser.add_argument("--grid-size", dest="grid_size", type=int, default=DEFAULT_GRID_SIZE, help="Odd grid dimension")
    parser.add_argument("--spacing", type=float, default=DEFAULT_SPACING_METERS, help="Cell spacing in meters")
    parser.add_argument("--place-id", dest="place_id", help="Target Google place_id")
    parser.add_argument("--cid", help="Target Google CID")
    parser.add_argument("--phone", help="Target phone number")
    parser.add_argument("--website", help="Target website or domain")
    parser.add_argument("--name", help="Target business name")
    parser.add_argument(
        "--depth",
        type=int,
        default=get_settings().search_depth,
        help="Number of results requested per cell",
    )
    parser.add_argument("--max-attempts", dest="max_attempts", type=int, help="Stop polling after N cycles")
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args()

    target = TargetBusiness(
        place_id=args.place_id,
        cid=args.cid,
        phone=args.phone,
        website=args.website,
        name=args.name,
    )
    try:
        job = run_grid_job(
            keyword=args.keyword,
            latitude=args.latitude,
            longitude=args.longitude,
            grid_size=args.grid_size,
            spacing=args.spacing,
            target=target,
            depth=args.depth,
            max_attempts=args.max_attempts,
        )
    except (ConfigError, ValueError) as exc:
        logger.error("Invalid input: %s", exc)
        raise SystemExit(2) from exc
    except SubmissionError as exc:
        logger.error("DataForSEO rejected the grid: status=%s message=%s", exc.status_code, exc.message)
        raise SystemExit(1) from exc
    except requests.RequestException as exc:
        logger.error("DataForSEO unreachable: %s", exc)
        raise SystemExit(1) from exc

    for line in format_matrix(job):
        print(line)
    print(" ".join(f"{band}={count}" for band, count in band_counts(job).items()))


if __name__ == "__main__":
    main()
