"""Utilities for turning qualified records into spreadsheet rows."""

import csv
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from leadcollector.core.models import QualifiedRecord

logger = logging.getLogger(__name__)

FULL_COLUMNS = (
    "BusinessName",
    "Category",
    "Suburb/Area",
    "StreetAddress",
    "Website",
    "OwnerName",
    "Email",
    "Phone",
    "InstagramURL",
    "FacebookURL",
    "GoogleMapsURL",
    "SourceURLs",
    "LastVerifiedDate",
)
SMS_COLUMNS = ("Phone", "Name")
EMAIL_COLUMNS = ("Email", "Name")

LAYOUTS = {
    "full": FULL_COLUMNS,
    "sms": SMS_COLUMNS,
    "email": EMAIL_COLUMNS,
}


def category_label(category: str) -> str:
    """Singular label for the category column, e.g. "Plumbers" -> "Plumber"."""
    label = (category or "").strip()
    return label[:-1] if label.endswith("s") else label


def area_label(area_query: str) -> str:
    return (area_query or "").split(",")[0].strip()


def to_export_row(
    record: QualifiedRecord,
    *,
    category: str,
    area: str,
    verified_on: Optional[date] = None,
) -> Dict[str, Any]:
    verified_on = verified_on or date.today()
    phone = record.normalized_phone or record.phone or ""
    return {
        "BusinessName": record.business_name or "",
        "Name": record.business_name or "",
        "Category": category_label(category),
        "Suburb/Area": area_label(area),
        "StreetAddress": record.street_address or "",
        "Website": record.website or "",
        "OwnerName": record.owner_name or "",
        "Email": record.email or "",
        "Phone": phone,
        "InstagramURL": record.instagram_url or "",
        "FacebookURL": record.facebook_url or "",
        "GoogleMapsURL": record.listing_url or "",
        "SourceURLs": ";".join(url for url in (record.listing_url, record.website) if url),
        "LastVerifiedDate": verified_on.isoformat(),
    }


def select_rows(rows: Iterable[Dict[str, Any]], layout: str) -> List[Dict[str, Any]]:
    """Drop rows that have nothing to offer for a channel-specific layout."""
    rows = list(rows)
    if layout == "sms":
        return [row for row in rows if row["Phone"]]
    if layout == "email":
        return [row for row in rows if row["Email"]]
    return rows


def write_csv(rows: Iterable[Dict[str, Any]], path: Path, columns: Sequence[str]) -> int:
    """Write ``rows`` restricted to ``columns``; returns the number of data rows written."""
    path.parent.mkdir(parents=True, exist_ok=True)
    written = 0
    with path.open("w", encoding="utf-8", newline="") as fh:
        writer = csv.DictWriter(fh, fieldnames=list(columns), extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
            written += 1
    logger.info("Wrote %d rows to %s", written, path)
    return written


def export_records(
    records: Iterable[QualifiedRecord],
    directory: Path,
    *,
    category: str,
    area: str,
    layouts: Sequence[str] = ("full",),
    verified_on: Optional[date] = None,
) -> Dict[str, Path]:
    verified_on = verified_on or date.today()
    rows = [to_export_row(r, category=category, area=area, verified_on=verified_on) for r in records]
    prefixes = {"full": "full_prospect_list", "sms": "sms_list", "email": "email_list"}
    written: Dict[str, Path] = {}
    for layout in layouts:
        if layout not in LAYOUTS:
            raise ValueError(f"Unknown export layout: {layout}")
        selected = select_rows(rows, layout)
        if not selected:
            logger.warning("No rows to export for layout %s", layout)
            continue
        path = directory / f"{prefixes[layout]}_{verified_on.isoformat()}.csv"
        write_csv(selected, path, LAYOUTS[layout])
        written[layout] = path
    return written
