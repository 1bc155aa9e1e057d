import pytest

from leadcollector.core.events import RunReporter
from leadcollector.core.models import CollectionResult, QualifiedRecord, RunStatus
from leadcollector.jobs import collect_server


def _record():
    return QualifiedRecord(
        business_name="Acme Plumbing",
        street_address="12 Smith St",
        website="https://acme.com.au/",
        phone="61412345678",
        listing_url="https://www.google.com/maps/place/acme",
        owner_name=None,
        email="jane@acme.com.au",
        instagram_url=None,
        facebook_url=None,
        normalized_phone="+61412345678",
        identity_key="acme plumbing|https://acme.com.au/",
    )


class FakeCollector:
    def __init__(self, status=RunStatus.COMPLETED):
        self.status = status
        self.requests = []
        self.cancel_events = []

    def run(self, request, sink=None, cancel_event=None):
        self.requests.append(request)
        self.cancel_events.append(cancel_event)
        reporter = RunReporter(sink)
        reporter.log("starting")
        if self.status is RunStatus.COMPLETED:
            result = CollectionResult(RunStatus.COMPLETED, request.target_count, records=[_record()], raw_processed=4)
            reporter.progress(1, request.target_count)
            reporter.complete(result.to_dict())
        else:
            result = CollectionResult(self.status, request.target_count, error="Failed to start browser session")
            reporter.error(result.error)
        return result


class InlineExecutor:
    def __init__(self):
        self.submitted = []

    def submit(self, fn, *args):
        self.submitted.append(args)
        fn(*args)


@pytest.fixture
def collector(monkeypatch):
    fake = FakeCollector()
    monkeypatch.setattr(collect_server, "build_collector", lambda: fake)
    monkeypatch.setattr(collect_server, "_executor", InlineExecutor())
    return fake


@pytest.fixture
def client():
    return collect_server.app.test_client()


VALID = {"category": "plumbers", "area_query": "Bondi", "country": "Australia", "target_count": 1}


def test_root_and_health_endpoints(client):
    assert client.get("/").status_code == 200
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


@pytest.mark.parametrize("route", ["/collect", "/collect/stream", "/collect/async"])
def test_routes_validate_payload(client, collector, route):
    assert client.post(route, json={}).status_code == 400
    assert client.post(route, json={"category": "plumbers"}).status_code == 400
    assert client.post(route, json={**VALID, "target_count": "many"}).status_code == 400
    assert collector.requests == []


def test_collect_returns_result_and_events(client, collector):
    response = client.post("/collect", json=VALID)

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["status"] == "completed"
    assert data["found"] == 1
    assert data["records"][0]["normalized_phone"] == "+61412345678"
    assert [event["event"] for event in data["events"]] == ["log", "progress", "complete"]
    assert collector.requests[0].search_query == "plumbers in Bondi, Australia"


def test_collect_reports_aborted_runs_as_server_error(client, monkeypatch):
    monkeypatch.setattr(collect_server, "build_collector", lambda: FakeCollector(RunStatus.ABORTED))

    response = client.post("/collect", json=VALID)

    assert response.status_code == 500
    data = response.get_json()["data"]
    assert data["status"] == "aborted"
    assert data["events"][-1] == {"event": "error", "error": "Failed to start browser session"}


def test_collect_stream_emits_server_sent_events(client, collector):
    response = client.post("/collect/stream", json=VALID)

    assert response.status_code == 200
    assert response.mimetype == "text/event-stream"
    body = response.get_data(as_text=True)
    assert body.startswith('event: log\ndata: {"message": "starting", "level": "info"}\n\n')
    assert "event: progress\n" in body
    assert body.rstrip().split("\n\n")[-1].startswith("event: complete\n")
    assert collector.cancel_events[0].is_set()


def test_collect_async_queues_run_and_posts_result(client, collector, monkeypatch):
    delivered = {}
    monkeypatch.setattr(
        collect_server,
        "post_collection_result",
        lambda run_id, result: delivered.update(run_id=run_id, result=result),
    )

    response = client.post("/collect/async", json=VALID)

    assert response.status_code == 202
    body = response.get_json()["data"]
    assert body["status"] == "queued"
    assert delivered["run_id"] == body["run_id"]
    assert delivered["result"]["found"] == 1


def test_async_job_failure_is_logged(monkeypatch, caplog):
    class Exploding:
        def run(self, request):
            raise RuntimeError("kaboom")

    monkeypatch.setattr(collect_server, "build_collector", lambda: Exploding())

    collect_server._run_job_safe("run-1", object())

    assert any("Collection job run-1 failed" in message for message in caplog.messages)
