"""Re-send collection results that could not be delivered to COLLECT_CALLBACK_URL."""

import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from leadcollector.jobs.delivery import FAILED_DIR, replay_failed_payloads  # noqa: E402

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    folder = Path(sys.argv[1]) if len(sys.argv) > 1 else FAILED_DIR
    delivered = replay_failed_payloads(folder)
    logging.getLogger(__name__).info("Replayed %d payload(s) from %s", delivered, folder)
