import pytest

from rankgrid.vendors import dataforseo

AUTH = ("login", "secret")


class DummyResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class DummySession:
    def __init__(self):
        self.calls = []
        self.response = None

    def get(self, url, auth=None, timeout=None):
        self.calls.append(("GET", url, auth, timeout, None))
        return self.response

    def post(self, url, json=None, auth=None, timeout=None):
        self.calls.append(("POST", url, auth, timeout, json))
        return self.response


@pytest.fixture(autouse=True)
def patch_session(monkeypatch):
    session = DummySession()
    monkeypatch.setattr(dataforseo, "_SESSION", session)
    return session


def test_task_post_success(patch_session):
    patch_session.response = DummyResponse(
        payload={
            "status_code": 20000,
            "tasks": [
                {"id": "t-1", "status_code": 20100, "status_message": "Task Created."},
                {"id": "t-2", "status_code": 20100, "status_message": "Task Created."},
            ],
        }
    )

    payload = dataforseo.task_post([{"keyword": "a"}, {"keyword": "b"}], AUTH)

    method, url, auth, timeout, body = patch_session.calls[0]
    assert method == "POST"
    assert url.endswith("/serp/google/maps/task_post")
    assert auth == AUTH
    assert body == [{"keyword": "a"}, {"keyword": "b"}]
    assert dataforseo.task_ids_of(payload) == ["t-1", "t-2"]


def test_task_post_rejected_envelope(patch_session):
    patch_session.response = DummyResponse(
        status_code=401, payload={"status_code": 40100, "status_message": "You are not authorized."}
    )

    with pytest.raises(dataforseo.DataForSEOError) as excinfo:
        dataforseo.task_post([{"keyword": "a"}], AUTH)

    assert excinfo.value.status_code == 40100
    assert excinfo.value.http_status == 401
    assert excinfo.value.to_dict() == {"dfs_status_code": 40100, "dfs_message": "You are not authorized."}


def test_task_ids_of_marks_rejected_tasks():
    payload = {
        "tasks": [
            {"id": "t-1", "status_code": 20100},
            {"id": "t-2", "status_code": 40501, "status_message": "Invalid Field"},
        ]
    }
    assert dataforseo.task_ids_of(payload) == ["t-1", None]


def test_task_get_non_json_body(patch_session):
    patch_session.response = DummyResponse(status_code=502, payload=None, text="<html>bad gateway</html>")

    with pytest.raises(dataforseo.DataForSEOError) as excinfo:
        dataforseo.task_get("t-1", AUTH)

    assert excinfo.value.http_status == 502
    assert patch_session.calls[0][1].endswith("/task_get/advanced/t-1")


def test_error_message_is_capped():
    error = dataforseo.DataForSEOError("x" * 2000, status_code=50000)
    assert len(error.message) == dataforseo.MAX_MESSAGE_LENGTH


@pytest.mark.parametrize(
    "status_code,message,expected",
    [
        (40602, "Task In Queue.", True),
        (40601, "Task Handed.", True),
        (None, "Task is processing", True),
        (40400, "Not Found.", True),
        (20000, "Ok.", False),
        (40501, "Invalid Field: 'keyword'.", False),
    ],
)
def test_is_pending_status(status_code, message, expected):
    assert dataforseo.is_pending_status(status_code, message) is expected


def test_items_of_handles_missing_result():
    assert dataforseo.items_of({}) == []
    assert dataforseo.items_of({"tasks": [{"result": None}]}) == []
    assert dataforseo.items_of({"tasks": [{"result": [{"items": [{"title": "a"}]}]}]}) == [{"title": "a"}]
