"""HTTP entrypoint exposing the maps rank grid to a browser front end."""

from __future__ import annotations

import csv
import io
import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional

import requests
from flask import Flask, Response, jsonify, request

from rankgrid.core.config import ConfigError, get_settings, require_dfs_credentials
from rankgrid.core.grid import DEFAULT_GRID_SIZE, DEFAULT_SPACING_METERS
from rankgrid.jobs import polling
from rankgrid.jobs.coordinator import JobCoordinator
from rankgrid.jobs.submission import SubmissionError, SubmitOptions, start_job
from rankgrid.models import Coordinate, Job, TargetBusiness
from rankgrid.vendors import google_places
from rankgrid.vendors.dataforseo import DataForSEOError, cap_message

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App & executor ----------
app = Flask(__name__)
_executor = ThreadPoolExecutor(max_workers=2)
_coordinator: Optional[JobCoordinator] = None

_TARGET_FIELDS = ("place_id", "cid", "phone", "website", "name")
_CSV_HEADER = ["Rank", "Name", "Address", "Rating", "Rating Count", "Website"]


def _get_coordinator() -> JobCoordinator:
    global _coordinator
    if _coordinator is None:
        _coordinator = JobCoordinator.from_settings()
    return _coordinator


# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    return "ok", 200


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint; only reads env-based settings."""
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "dfs_configured": bool(settings.dfs_login and settings.dfs_password),
                "places_configured": bool(settings.google_places_api_key),
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.post("/maps-grid/start")
def start_grid() -> Any:
    """Submit one DataForSEO task per grid cell and return cells + task ids in the same order."""
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    result = _start_from_payload(payload)
    if not isinstance(result, Job):
        return result

    options = _options_from_payload(payload)
    return (
        jsonify(
            {
                "ok": True,
                "cells": [cell.to_dict() for cell in result.cells],
                "ids": result.task_ids,
                "zoom": options.zoom,
                "device": options.device,
                "language_code": options.language_code,
            }
        ),
        200,
    )


@app.post("/maps-grid/poll")
def poll_grid() -> Any:
    """Poll a set of task ids once and return status + rank per id."""
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    ids = payload.get("ids")
    if not isinstance(ids, list) or not ids:
        return jsonify({"ok": False, "error": "Missing ids[]"}), 400

    target = TargetBusiness.from_dict(payload.get("target"))
    try:
        outcomes = polling.poll_once([str(task_id) for task_id in ids], target, auth=require_dfs_credentials())
    except ConfigError as exc:
        return jsonify({"ok": False, "error": str(exc)}), 500
    except requests.RequestException as exc:
        logger.warning("task_get transport failure: %s", exc)
        return jsonify({"ok": False, "error": "DataForSEO unreachable", "detail": cap_message(exc)}), 502

    return jsonify({"ok": True, "results": [outcome.to_dict() for outcome in outcomes.values()]}), 200


@app.get("/maps-grid/top")
def cell_detail() -> Any:
    """Top-N competitors for one cell; also corrects the running job's rank for that cell."""
    result = _fetch_detail()
    if not isinstance(result, dict):
        return result
    return jsonify({"ok": True, **result}), 200


@app.get("/maps-grid/top.csv")
def cell_detail_csv() -> Any:
    result = _fetch_detail()
    if not isinstance(result, dict):
        return result

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL)
    writer.writerow(_CSV_HEADER)
    for row in result["items"]:
        writer.writerow(
            [
                "" if row["rank"] is None else row["rank"],
                row["name"] or "",
                row["address"] or "",
                "" if row["rating"] is None else row["rating"],
                "" if row["rating_count"] is None else row["rating_count"],
                row["website"] or "",
            ]
        )
    return Response(
        buffer.getvalue(),
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=competitors.csv"},
    )


@app.post("/maps-grid/jobs")
def enqueue_grid_job() -> Any:
    """Start a grid job and keep polling it in the background; replaces any previous job."""
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    result = _start_from_payload(payload)
    if not isinstance(result, Job):
        return result

    coordinator = _get_coordinator()
    stop = coordinator.start(result)
    logger.info("Queueing background polling for keyword=%s", result.keyword)
    _executor.submit(_run_job_safe, coordinator, result, stop)
    return jsonify({"data": coordinator.snapshot()}), 202


@app.get("/maps-grid/jobs/current")
def current_grid_job() -> Any:
    return jsonify({"data": _get_coordinator().snapshot()}), 200


@app.post("/place/resolve-by-name")
def resolve_place() -> Any:
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    name = str(payload.get("name") or "").strip()
    if not name:
        return jsonify({"error": "Missing business name"}), 400

    api_key = get_settings().google_places_api_key
    if not api_key:
        return jsonify({"error": "Missing GOOGLE_PLACES_API_KEY"}), 500

    try:
        resolved = google_places.resolve_by_name(
            name,
            api_key,
            location_text=str(payload.get("locationText") or ""),
            radius_m=payload.get("radiusM", google_places.DEFAULT_BIAS_RADIUS_M),
        )
    except google_places.GooglePlacesError as exc:
        return jsonify({"error": "No candidates", "details_error": cap_message(exc)}), 404
    except requests.RequestException as exc:
        logger.error("Places lookup failed for %s: %s", name, exc)
        return jsonify({"error": "Places lookup failed", "detail": cap_message(exc)}), 502

    return jsonify({"ok": True, **resolved}), 200


# ---------- Internals ----------


def _options_from_payload(payload: Dict[str, Any]) -> SubmitOptions:
    return SubmitOptions.from_settings(
        language_code=payload.get("language_code"),
        device=payload.get("device"),
        zoom=payload.get("zoom"),
        depth=payload.get("depth"),
    )


def _start_from_payload(payload: Dict[str, Any]) -> Any:
    """Return the submitted Job, or a Flask error response tuple."""
    keyword = str(payload.get("keyword") or "").strip()
    try:
        center = Coordinate(latitude=float(payload["centerLat"]), longitude=float(payload["centerLng"]))
    except (KeyError, TypeError, ValueError):
        center = None
    if not keyword or center is None:
        return jsonify({"ok": False, "error": "Missing keyword or centerLat/centerLng"}), 400

    try:
        auth = require_dfs_credentials()
    except ConfigError as exc:
        return jsonify({"ok": False, "error": str(exc)}), 500

    try:
        options = _options_from_payload(payload)
        job = start_job(
            keyword,
            center,
            payload.get("gridSize", DEFAULT_GRID_SIZE),
            float(payload.get("spacingM", DEFAULT_SPACING_METERS)),
            TargetBusiness.from_dict(payload.get("target")),
            options=options,
            auth=auth,
        )
    except (TypeError, ValueError) as exc:
        return jsonify({"ok": False, "error": str(exc)}), 400
    except SubmissionError as exc:
        return (
            jsonify({"ok": False, "error": "DataForSEO task_post failed", **exc.to_dict()}),
            exc.http_status if exc.http_status and exc.http_status >= 400 else 502,
        )
    except requests.RequestException as exc:
        logger.error("task_post transport failure: %s", exc)
        return jsonify({"ok": False, "error": "DataForSEO unreachable", "detail": cap_message(exc)}), 502
    return job


def _target_from_args(task_id: str) -> TargetBusiness:
    target = TargetBusiness.from_dict({field: request.args.get(field) for field in _TARGET_FIELDS})
    if target.has_signal():
        return target
    job = _get_coordinator().job
    if job is not None and job.find_task(task_id) is not None:
        return job.target
    return target


def _fetch_detail() -> Any:
    """Return the detail dict for ``?id=``, or a Flask error response tuple."""
    task_id = request.args.get("id")
    if not task_id:
        return jsonify({"error": "Missing ?id="}), 400

    try:
        auth = require_dfs_credentials()
    except ConfigError as exc:
        return jsonify({"error": str(exc)}), 500

    target = _target_from_args(task_id)
    try:
        detail = polling.fetch_cell_detail(task_id, target, limit=request.args.get("limit", "20"), auth=auth)
    except DataForSEOError as exc:
        status = exc.http_status if exc.http_status and exc.http_status >= 400 else 502
        return jsonify({"error": "DFS fetch failed", **exc.to_dict()}), status
    except requests.RequestException as exc:
        return jsonify({"error": "DFS unreachable", "detail": cap_message(exc)}), 502

    coordinator = _get_coordinator()
    # A rank found for some other business must not overwrite the job's rank.
    if coordinator.job is not None and target == coordinator.job.target:
        coordinator.apply_detail(task_id, detail["rank"])
    return detail


def _run_job_safe(coordinator: JobCoordinator, job: Job, stop: threading.Event) -> None:
    try:
        coordinator.run(job, stop=stop)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Grid job polling failed: %s", exc)


def main() -> None:
    env_port = os.getenv("PORT")
    port = int(env_port or 8080)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
