"""HTTP entrypoint that runs lead collections (Cloud Run friendly)."""

from __future__ import annotations

import json
import logging
import os
import queue
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterator

from flask import Flask, Response, jsonify, request, stream_with_context

from leadcollector.core.config import get_settings
from leadcollector.core.errors import RequestValidationError
from leadcollector.core.events import EventRecorder, RunEvent
from leadcollector.core.models import CollectionRequest, RunStatus
from leadcollector.core.orchestrator import LeadCollector
from leadcollector.jobs.delivery import post_collection_result

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App & executor ----------
app = Flask(__name__)
_executor = ThreadPoolExecutor(max_workers=4)

_STREAM_END = object()


def build_collector() -> LeadCollector:
    return LeadCollector(get_settings())


def _parse_request() -> CollectionRequest:
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    return CollectionRequest.from_payload(payload)


# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    """Simple root to avoid 404 on GET /"""
    return "ok", 200


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint; reads settings only, never starts a browser."""
    settings = get_settings()
    body = {
        "status": "ok",
        "domestic_country": settings.domestic_country,
        "headless": settings.browser_headless,
        "callback_configured": bool(settings.collect_callback_url),
        "revision": os.getenv("K_REVISION", "unknown"),
    }
    return jsonify(body), 200


@app.post("/collect")
def collect() -> Any:
    """
    Run a collection and answer once it has finished.
    Required JSON fields: category; area_query (or location/postal_code) or country;
    target_count (positive int, or "unbounded" for a run limited only by UNBOUNDED_RAW_CEILING).
    Optional: qualification_mode ("either" | "both", default "both").
    """
    try:
        collection_request = _parse_request()
    except RequestValidationError as exc:
        return jsonify({"error": str(exc)}), 400

    recorder = EventRecorder()
    result = build_collector().run(collection_request, sink=recorder)
    body = {"data": {**result.to_dict(), "events": recorder.as_dicts()}}
    status_code = 200 if result.status is RunStatus.COMPLETED else 500
    return jsonify(body), status_code


@app.post("/collect/stream")
def collect_stream() -> Any:
    """Run a collection and stream log/progress/terminal events as server-sent events."""
    try:
        collection_request = _parse_request()
    except RequestValidationError as exc:
        return jsonify({"error": str(exc)}), 400

    events: "queue.Queue[Any]" = queue.Queue()
    cancel_event = threading.Event()
    collector = build_collector()

    def _run() -> None:
        try:
            collector.run(collection_request, sink=events.put, cancel_event=cancel_event)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Streaming collection failed: %s", exc)
            events.put(RunEvent("error", {"error": "collection failed"}))
        finally:
            events.put(_STREAM_END)

    _executor.submit(_run)

    def _generate() -> Iterator[str]:
        try:
            while True:
                event = events.get()
                if event is _STREAM_END:
                    break
                yield f"event: {event.kind}\ndata: {json.dumps(event.payload)}\n\n"
        finally:
            # Client disconnects close the generator early; stop the run too.
            cancel_event.set()

    return Response(stream_with_context(_generate()), mimetype="text/event-stream")


@app.post("/collect/async")
def enqueue_collect() -> Any:
    """Queue a collection; the result is POSTed to COLLECT_CALLBACK_URL when done."""
    try:
        collection_request = _parse_request()
    except RequestValidationError as exc:
        return jsonify({"error": str(exc)}), 400

    run_id = uuid.uuid4().hex
    logger.info("Queueing collection run %s: %s", run_id, collection_request)
    _executor.submit(_run_job_safe, run_id, collection_request)

    # 202 Accepted: work continues in the background
    return jsonify({"data": {"status": "queued", "run_id": run_id}}), 202


# ---------- Internals ----------


def _run_job_safe(run_id: str, collection_request: CollectionRequest) -> None:
    try:
        result = build_collector().run(collection_request)
        post_collection_result(run_id, result.to_dict())
    except Exception as exc:  # noqa: BLE001
        logger.exception("Collection job %s failed: %s", run_id, exc)


def main() -> None:
    """Cloud Run injects PORT; fall back to WORKER_PORT for local runs."""
    env_port = os.getenv("PORT")
    logger.info("[BOOT] ENV PORT=%s", env_port)

    port = int(env_port or get_settings().worker_port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)

    app.run(host="0.0.0.0", port=port, threaded=True)


if __name__ == "__main__":
    main()
