import json
from pathlib import Path
from unittest.mock import MagicMock

import requests

from leadcollector.core.config import Settings
from leadcollector.jobs import delivery

save_failed_payload = delivery.save_failed_payload


def test_post_collection_result_posts_to_callback():
    session = MagicMock()
    session.post.return_value.status_code = 200
    settings = Settings(collect_callback_url="https://api.example.test/")

    assert delivery.post_collection_result("run-1", {"status": "completed"}, settings=settings, session=session)

    session.post.assert_called_once()
    args, kwargs = session.post.call_args
    assert args[0] == "https://api.example.test/collect-result"
    assert kwargs["json"] == {"run_id": "run-1", "status": "completed"}
    assert kwargs["timeout"] == delivery.REQUEST_TIMEOUT


def test_post_collection_result_skips_without_callback(caplog):
    session = MagicMock()

    assert not delivery.post_collection_result("run-1", {}, settings=Settings(), session=session)

    session.post.assert_not_called()
    assert "COLLECT_CALLBACK_URL missing" in caplog.text


def test_post_collection_result_saves_failed_payload(tmp_path, monkeypatch):
    session = MagicMock()
    session.post.side_effect = requests.ConnectionError("refused")
    monkeypatch.setattr(delivery, "save_failed_payload", lambda payload: save_failed_payload(payload, tmp_path))

    settings = Settings(collect_callback_url="https://api.example.test")
    assert not delivery.post_collection_result("run-2", {"status": "completed"}, settings=settings, session=session)

    saved = list(tmp_path.glob("failed-run-2-*.json"))
    assert len(saved) == 1
    assert json.loads(saved[0].read_text(encoding="utf-8"))["run_id"] == "run-2"


def test_post_collection_result_treats_http_errors_as_failures(tmp_path, monkeypatch):
    session = MagicMock()
    session.post.return_value.raise_for_status.side_effect = requests.HTTPError("503")
    monkeypatch.setattr(delivery, "save_failed_payload", lambda payload: save_failed_payload(payload, tmp_path))

    settings = Settings(collect_callback_url="https://api.example.test")
    assert not delivery.post_collection_result("run-3", {}, settings=settings, session=session)
    assert len(list(tmp_path.glob("failed-run-3-*.json"))) == 1


def test_save_failed_payload_writes_json(tmp_path):
    path = save_failed_payload({"run_id": "abc", "records": []}, directory=tmp_path / "failed")

    assert path.parent == tmp_path / "failed"
    assert json.loads(path.read_text(encoding="utf-8")) == {"run_id": "abc", "records": []}


def test_replay_failed_payloads_removes_delivered_files(tmp_path):
    save_failed_payload({"run_id": "ok"}, directory=tmp_path)
    save_failed_payload({"run_id": "bad"}, directory=tmp_path)
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    def post(url, json, timeout):
        response = MagicMock()
        if json["run_id"] == "bad":
            response.raise_for_status.side_effect = requests.HTTPError("500")
        return response

    session = MagicMock()
    session.post.side_effect = post
    settings = Settings(collect_callback_url="https://api.example.test")

    delivered = delivery.replay_failed_payloads(tmp_path, settings=settings, session=session)

    assert delivered == 1
    remaining = sorted(path.name for path in tmp_path.iterdir())
    assert len(remaining) == 2
    assert "notes.txt" in remaining
    assert any(name.startswith("failed-bad-") for name in remaining)
    assert session.post.call_args.args[0] == "https://api.example.test/collect-result"


def test_replay_failed_payloads_without_callback_does_nothing(tmp_path):
    session = MagicMock()

    assert delivery.replay_failed_payloads(tmp_path, settings=Settings(), session=session) == 0
    session.post.assert_not_called()


def test_core_package_never_touches_the_failed_spool():
    core_dir = Path(delivery.__file__).resolve().parents[1] / "core"

    for module in core_dir.glob("*.py"):
        source = module.read_text(encoding="utf-8")
        assert "delivery" not in source, module.name
        assert "FAILED_DIR" not in source, module.name
