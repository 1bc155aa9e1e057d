"""Delivery of finished run results to the configured callback endpoint."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from leadcollector.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10
FAILED_DIR = Path(__file__).resolve().parents[2].joinpath("data", "failed")


def _build_session() -> requests.Session:
    session = requests.Session()
    retries = Retry(
        total=3,
        backoff_factor=1,
        status_forcelist=(500, 502, 503, 504),
        allowed_methods=("POST",),
    )
    session.mount("http://", HTTPAdapter(max_retries=retries))
    session.mount("https://", HTTPAdapter(max_retries=retries))
    return session


def callback_url(settings: Settings) -> Optional[str]:
    if not settings.collect_callback_url:
        return None
    return settings.collect_callback_url.rstrip("/") + "/collect-result"


def save_failed_payload(payload: Dict[str, Any], directory: Path = FAILED_DIR) -> Optional[Path]:
    """Persist an undeliverable payload so it can be replayed later."""
    try:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory.joinpath(f"failed-{payload.get('run_id', 'run')}-{int(time.time())}.json")
        with path.open("w", encoding="utf-8") as fh:
            json.dump(payload, fh, ensure_ascii=False, indent=2)
    except OSError as exc:
        logger.error("Failed to save undelivered result to disk: %s", exc)
        return None
    logger.info("Saved undelivered result to %s", path)
    return path


def post_collection_result(
    run_id: str,
    result: Dict[str, Any],
    settings: Optional[Settings] = None,
    session: Optional[requests.Session] = None,
) -> bool:
    """POST a finished run to ``COLLECT_CALLBACK_URL``; returns True on a 2xx answer."""
    settings = settings or get_settings()
    url = callback_url(settings)
    if url is None:
        logger.warning("COLLECT_CALLBACK_URL missing; skipping callback for run %s", run_id)
        return False

    payload = {"run_id": run_id, **result}
    session = session or _build_session()
    try:
        response = session.post(url, json=payload, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.error("Failed to POST collection result for run %s: %s", run_id, exc)
        save_failed_payload(payload)
        return False
    logger.info("Delivered collection result for run %s (status=%s)", run_id, response.status_code)
    return True


def replay_failed_payloads(
    directory: Path = FAILED_DIR,
    settings: Optional[Settings] = None,
    session: Optional[requests.Session] = None,
) -> int:
    """Re-send every saved payload in ``directory``; delivered files are removed.

    Files that still cannot be delivered stay where they are. Returns the
    number of payloads delivered.
    """
    settings = settings or get_settings()
    url = callback_url(settings)
    if url is None:
        logger.warning("COLLECT_CALLBACK_URL missing; nothing to replay against")
        return 0
    if not directory.is_dir():
        logger.info("No failed folder: %s", directory)
        return 0

    session = session or _build_session()
    delivered = 0
    for path in sorted(directory.glob("*.json")):
        try:
            with path.open("r", encoding="utf-8") as fh:
                payload = json.load(fh)
            response = session.post(url, json=payload, timeout=REQUEST_TIMEOUT)
            response.raise_for_status()
        except (OSError, ValueError, requests.RequestException) as exc:
            logger.error("Failed to replay %s: %s", path.name, exc)
            continue
        logger.info("Replayed run %s from %s => %s", payload.get("run_id"), path.name, response.status_code)
        path.unlink()
        delivered += 1
    return delivered
