"""CLI job to collect qualified leads for one category and area."""

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from leadcollector.core.config import ConfigError, get_settings
from leadcollector.core.errors import RequestValidationError
from leadcollector.core.models import CollectionRequest, CollectionResult, RunStatus
from leadcollector.core.orchestrator import LeadCollector
from leadcollector.etl.export import LAYOUTS, export_records

logger = logging.getLogger(__name__)


def run_collect_job(
    *,
    category: str,
    area: Optional[str],
    country: Optional[str],
    count: str,
    mode: str,
    output_dir: Optional[Path] = None,
    layouts: Optional[List[str]] = None,
) -> CollectionResult:
    collection_request = CollectionRequest.from_payload(
        {
            "category": category,
            "area_query": area,
            "country": country,
            "target_count": count,
            "qualification_mode": mode,
        }
    )
    logger.info("Running collection for query=%s", collection_request.search_query)

    result = LeadCollector(get_settings()).run(collection_request)
    logger.info(
        "Completed run: status=%s found=%d shortfall=%d raw_processed=%d",
        result.status.value,
        len(result.records),
        result.shortfall,
        result.raw_processed,
    )

    if output_dir is not None and result.status is RunStatus.COMPLETED and result.records:
        written = export_records(
            result.records,
            output_dir,
            category=collection_request.category,
            area=collection_request.area_query,
            layouts=layouts or ["full"],
        )
        for layout, path in written.items():
            logger.info("Exported %s layout to %s", layout, path)
    return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Collect qualified business leads from Google Maps")
    parser.add_argument("--category", dest="category", required=True, help="Business category to search")
    parser.add_argument("--area", dest="area", help="Suburb, city and/or postal code")
    parser.add_argument("--country", dest="country", help="Country filter")
    parser.add_argument(
        "--count",
        dest="count",
        default="10",
        help="Number of qualified leads to collect, or 'unbounded'",
    )
    parser.add_argument(
        "--mode",
        dest="mode",
        choices=["either", "both"],
        default="both",
        help="Require a mobile phone AND a business email (both) or just one of them (either)",
    )
    parser.add_argument("--output-dir", dest="output_dir", type=Path, help="Directory for CSV exports")
    parser.add_argument(
        "--layout",
        dest="layouts",
        action="append",
        choices=sorted(LAYOUTS),
        help="CSV layout to export; repeat for several (default: full)",
    )
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args()

    try:
        result = run_collect_job(
            category=args.category,
            area=args.area,
            country=args.country,
            count=args.count,
            mode=args.mode,
            output_dir=args.output_dir,
            layouts=args.layouts,
        )
    except (ConfigError, RequestValidationError) as exc:
        logger.error("Invalid configuration or request: %s", exc)
        raise SystemExit(2) from exc

    if result.status is not RunStatus.COMPLETED:
        logger.error("Collection did not complete: %s", result.error)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
