import pytest

from rankgrid.core import config
from rankgrid.core.grid import build_grid
from rankgrid.jobs import submission
from rankgrid.models import Coordinate, TargetBusiness, TaskStatus
from rankgrid.vendors import dataforseo

AUTH = ("login", "secret")
CENTER = Coordinate(latitude=41.671, longitude=-73.12)


class FakeProvider:
    """Accepts every task and hands out sequential ids."""

    def __init__(self):
        self.batches = []

    def __call__(self, tasks, auth):
        self.batches.append(list(tasks))
        offset = sum(len(batch) for batch in self.batches[:-1])
        return {
            "status_code": 20000,
            "tasks": [{"id": f"task-{offset + i}", "status_code": 20100} for i in range(len(tasks))],
        }


@pytest.fixture
def provider(monkeypatch):
    fake = FakeProvider()
    monkeypatch.setattr(submission.dataforseo, "task_post", fake)
    return fake


def test_build_task_descriptor():
    cell = build_grid(CENTER, 1, 500)[0]
    options = submission.SubmitOptions(language_code="en", device="mobile", depth=60, zoom="15z")

    task = submission.build_task("plumber", cell, 4, options, tag_prefix="grid_3_500")

    assert task == {
        "keyword": "plumber",
        "location_coordinate": "41.671000,-73.120000,15z",
        "device": "mobile",
        "language_code": "en",
        "depth": 60,
        "search_param": "hl=en&gl=us&num=60",
        "tag": "grid_3_500_4",
    }


def test_build_task_without_zoom():
    cell = build_grid(CENTER, 1, 500)[0]
    task = submission.build_task("plumber", cell, 0, submission.SubmitOptions(zoom=None))
    assert task["location_coordinate"] == "41.671000,-73.120000"


def test_submit_options_reject_shallow_depth():
    with pytest.raises(ValueError):
        submission.SubmitOptions(depth=0)


def test_submit_options_from_settings(monkeypatch):
    monkeypatch.setenv("DFS_SEARCH_DEPTH", "80")
    config.get_settings.cache_clear()

    options = submission.SubmitOptions.from_settings(device="mobile", zoom=None)

    assert options.depth == 80
    assert options.device == "mobile"
    assert options.zoom == "15z"


def test_submit_preserves_cell_order(provider):
    cells = build_grid(CENTER, 3, 500)

    states = submission.submit("plumber", cells, submission.SubmitOptions(), auth=AUTH)

    assert [s.task_id for s in states] == [f"task-{i}" for i in range(9)]
    assert [s.cell for s in states] == cells
    assert all(s.status is TaskStatus.PENDING and s.rank is None for s in states)
    assert [t["tag"] for t in provider.batches[0]][:2] == ["grid_0", "grid_1"]


def test_submit_batches_at_provider_limit(provider):
    cells = build_grid(CENTER, 13, 200)

    states = submission.submit("plumber", cells, submission.SubmitOptions(), auth=AUTH)

    assert [len(batch) for batch in provider.batches] == [100, 69]
    assert len(states) == 169
    assert states[150].task_id == "task-150"
    assert states[150].cell == cells[150]


def test_submit_surfaces_provider_rejection(monkeypatch):
    def reject(tasks, auth):
        raise dataforseo.DataForSEOError("You are not authorized.", status_code=40100, http_status=401)

    monkeypatch.setattr(submission.dataforseo, "task_post", reject)

    with pytest.raises(submission.SubmissionError) as excinfo:
        submission.submit("plumber", build_grid(CENTER, 3, 500), submission.SubmitOptions(), auth=AUTH)

    assert excinfo.value.status_code == 40100
    assert excinfo.value.message == "You are not authorized."


def test_submit_fails_when_provider_drops_a_task(monkeypatch):
    def partial(tasks, auth):
        result = [{"id": f"t{i}", "status_code": 20100} for i in range(len(tasks))]
        result[-1] = {"id": None, "status_code": 40501, "status_message": "Invalid Field"}
        return {"status_code": 20000, "tasks": result}

    monkeypatch.setattr(submission.dataforseo, "task_post", partial)

    with pytest.raises(submission.SubmissionError):
        submission.submit("plumber", build_grid(CENTER, 3, 500), submission.SubmitOptions(), auth=AUTH)


def test_submit_requires_keyword_and_cells(provider):
    with pytest.raises(ValueError):
        submission.submit(" ", build_grid(CENTER, 1, 500), submission.SubmitOptions(), auth=AUTH)
    with pytest.raises(ValueError):
        submission.submit("plumber", [], submission.SubmitOptions(), auth=AUTH)


def test_start_job_builds_grid_and_submits(provider):
    target = TargetBusiness(place_id="pid")

    job = submission.start_job("plumber", CENTER, 3, 500, target, auth=AUTH)

    assert job.total == 9
    assert job.keyword == "plumber"
    assert job.target is target
    assert provider.batches[0][0]["tag"] == "grid_3_500_0"
    assert provider.batches[0][0]["depth"] == 50


def test_start_job_rejects_even_grid(provider):
    with pytest.raises(ValueError):
        submission.start_job("plumber", CENTER, 4, 500, TargetBusiness(place_id="pid"), auth=AUTH)
    assert provider.batches == []


def test_start_job_requires_credentials(monkeypatch, provider):
    monkeypatch.setenv("DFS_LOGIN", "")
    config.get_settings.cache_clear()

    with pytest.raises(config.ConfigError):
        submission.start_job("plumber", CENTER, 3, 500, TargetBusiness(place_id="pid"))
