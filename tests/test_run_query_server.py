import pytest

from leadscout.core.config import Settings
from leadscout.jobs import run_query_server


@pytest.fixture(autouse=True)
def reset_executor(monkeypatch):
    submitted = {}

    class DummyExecutor:
        def submit(self, fn, args):
            submitted["called"] = True
            submitted["fn"] = fn
            submitted["args"] = args

    monkeypatch.setattr(run_query_server, "_executor", DummyExecutor())
    monkeypatch.setattr(run_query_server, "get_settings", lambda: Settings(output_path="leads.json"))
    monkeypatch.setattr(run_query_server, "run_discovery_job", lambda **kwargs: submitted.update(job=kwargs))
    yield submitted


def test_root_endpoint():
    client = run_query_server.app.test_client()
    assert client.get("/").status_code == 200


def test_health_endpoint():
    client = run_query_server.app.test_client()
    response = client.get("/healthz")
    body = response.get_json()
    assert response.status_code == 200
    assert body["status"] == "ok"
    assert body["concurrency"] == 5
    assert body["headless"] is True


def test_enqueue_scrape_validates_payload(reset_executor):
    client = run_query_server.app.test_client()
    assert client.post("/scrape", json={}).status_code == 400
    assert client.post("/scrape", json={"query": "cafes", "location": "  "}).status_code == 400
    assert client.post("/scrape", json={"location": "Madrid", "concurrency": "bad"}).status_code == 400
    assert client.post("/scrape", json={"location": "Madrid", "concurrency": 0}).status_code == 400
    assert "called" not in reset_executor


def test_enqueue_scrape_passes_params(reset_executor):
    client = run_query_server.app.test_client()
    payload = {
        "query": " cafes ",
        "location": "Madrid, Spain",
        "concurrency": "4",
        "subdivide": True,
        "zones": True,
    }
    response = client.post("/scrape", json=payload)

    assert response.status_code == 202
    assert response.get_json() == {"data": {"status": "queued"}}
    assert reset_executor["called"] is True
    assert reset_executor["args"] == {
        "query": "cafes",
        "location": "Madrid, Spain",
        "output": "leads.json",
        "concurrency": 4,
        "use_subdivision": True,
        "include_zones": True,
    }


def test_enqueue_scrape_defaults(reset_executor):
    client = run_query_server.app.test_client()
    response = client.post("/scrape", json={"location": "Lyon"})

    assert response.status_code == 202
    args = reset_executor["args"]
    assert args["query"] == ""
    assert args["output"] == "leads.json"
    assert args["concurrency"] is None
    assert args["use_subdivision"] is False
    assert args["include_zones"] is False


def test_run_job_safe_calls_job_and_swallows_errors(reset_executor, monkeypatch, caplog):
    run_query_server._run_job_safe({"query": "", "location": "Lyon"})
    assert reset_executor["job"] == {"query": "", "location": "Lyon"}

    def fail(**kwargs):
        raise RuntimeError("browser missing")

    monkeypatch.setattr(run_query_server, "run_discovery_job", fail)
    with caplog.at_level("ERROR"):
        run_query_server._run_job_safe({"location": "Lyon"})
    assert "browser missing" in caplog.text


@pytest.mark.parametrize("output", ["/etc/cron.d/leads", "../leads.json", "leads.json"])
def test_enqueue_scrape_rejects_client_output_path(reset_executor, output):
    client = run_query_server.app.test_client()
    response = client.post("/scrape", json={"location": "Madrid", "output": output})

    assert response.status_code == 400
    assert "output" in response.get_json()["error"]
    assert "called" not in reset_executor
