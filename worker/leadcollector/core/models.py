"""Core data models shared by the lead collection pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Set

from leadcollector.core.errors import RequestValidationError

UNBOUNDED = "unbounded"


class QualificationMode(str, Enum):
    """Which contact channels a listing needs before it is kept."""

    REQUIRE_BOTH = "both"
    REQUIRE_EITHER = "either"

    @classmethod
    def parse(cls, value: Any) -> "QualificationMode":
        if isinstance(value, cls):
            return value
        if value is None or value == "":
            return cls.REQUIRE_BOTH
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise RequestValidationError("qualification_mode must be 'either' or 'both'") from exc


class RunStatus(str, Enum):
    COMPLETED = "completed"
    ABORTED = "aborted"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class CollectionRequest:
    """One caller request; ``target_count`` of ``None`` means unbounded."""

    category: str
    area_query: str = ""
    country: str = ""
    target_count: Optional[int] = None
    qualification_mode: QualificationMode = QualificationMode.REQUIRE_BOTH

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CollectionRequest":
        """Validate a JSON-ish payload before any browser work is started."""
        category = str(payload.get("category") or "").strip()
        if not category:
            raise RequestValidationError("category is required")

        area_parts = [
            str(payload.get(key) or "").strip() for key in ("area_query", "location", "postal_code")
        ]
        area_query = " ".join(part for part in area_parts if part)
        country = str(payload.get("country") or "").strip()
        if not area_query and not country:
            raise RequestValidationError("area_query or country is required")

        return cls(
            category=category,
            area_query=area_query,
            country=country,
            target_count=_parse_target(payload.get("target_count", payload.get("count"))),
            qualification_mode=QualificationMode.parse(payload.get("qualification_mode")),
        )

    @property
    def is_unbounded(self) -> bool:
        return self.target_count is None

    @property
    def search_query(self) -> str:
        location = ", ".join(part for part in (self.area_query, self.country) if part)
        return f"{self.category} in {location}"

    @property
    def target_label(self) -> str:
        return UNBOUNDED if self.target_count is None else str(self.target_count)


def _parse_target(raw: Any) -> Optional[int]:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise RequestValidationError("target_count is required (a positive integer or 'unbounded')")
    if isinstance(raw, str) and raw.strip().lower() == UNBOUNDED:
        return None
    if isinstance(raw, bool):
        raise RequestValidationError("target_count must be a positive integer or 'unbounded'")
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise RequestValidationError("target_count must be a positive integer or 'unbounded'") from exc
    if value <= 0:
        raise RequestValidationError("target_count must be positive")
    return value


@dataclass(slots=True)
class WebsiteDetails:
    """Fields harvested from a business's own website."""

    owner_name: Optional[str] = None
    email: Optional[str] = None
    instagram_url: Optional[str] = None
    facebook_url: Optional[str] = None
    visited_url: Optional[str] = None
    degraded: bool = False


@dataclass(slots=True)
class RawBusinessRecord:
    """Merged output of the listing page and website stages for one candidate."""

    business_name: Optional[str] = None
    street_address: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    listing_url: Optional[str] = None
    owner_name: Optional[str] = None
    email: Optional[str] = None
    instagram_url: Optional[str] = None
    facebook_url: Optional[str] = None

    def merge_website(self, details: WebsiteDetails) -> None:
        """Fill website-owned fields without overwriting anything already set."""
        for name in ("owner_name", "email", "instagram_url", "facebook_url"):
            if not getattr(self, name) and getattr(details, name):
                setattr(self, name, getattr(details, name))

    @property
    def identity_key(self) -> str:
        name = (self.business_name or "").strip().lower()
        website = (self.website or "").strip().lower()
        if not name and not website:
            return ""
        return f"{name}|{website}"


@dataclass(frozen=True)
class QualifiedRecord:
    business_name: Optional[str]
    street_address: Optional[str]
    website: Optional[str]
    phone: Optional[str]
    listing_url: Optional[str]
    owner_name: Optional[str]
    email: Optional[str]
    instagram_url: Optional[str]
    facebook_url: Optional[str]
    normalized_phone: Optional[str]
    identity_key: str

    @classmethod
    def from_raw(cls, raw: RawBusinessRecord, normalized_phone: Optional[str]) -> "QualifiedRecord":
        return cls(
            business_name=raw.business_name,
            street_address=raw.street_address,
            website=raw.website,
            phone=raw.phone,
            listing_url=raw.listing_url,
            owner_name=raw.owner_name,
            email=raw.email,
            instagram_url=raw.instagram_url,
            facebook_url=raw.facebook_url,
            normalized_phone=normalized_phone,
            identity_key=raw.identity_key,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class RunCounters:
    raw_processed: int = 0
    scroll_attempts: int = 0
    collection_attempts: int = 0


@dataclass(slots=True)
class RunState:
    """Mutable bookkeeping for exactly one collection run."""

    seen_candidate_ids: Set[str] = field(default_factory=set)
    accepted_identity_keys: Set[str] = field(default_factory=set)
    qualified_records: List[QualifiedRecord] = field(default_factory=list)
    counters: RunCounters = field(default_factory=RunCounters)

    @property
    def qualified_found(self) -> int:
        return len(self.qualified_records)


@dataclass(slots=True)
class DiscoveryBatch:
    """New candidate IDs from one Listing Source call."""

    candidate_ids: List[str] = field(default_factory=list)
    surface_missing: bool = False
    scrolls: int = 0

    def __len__(self) -> int:
        return len(self.candidate_ids)


@dataclass(slots=True)
class CollectionResult:
    status: RunStatus
    target_count: Optional[int]
    records: List[QualifiedRecord] = field(default_factory=list)
    error: Optional[str] = None
    raw_processed: int = 0
    discovered: int = 0

    @property
    def shortfall(self) -> int:
        if self.target_count is None or self.status is not RunStatus.COMPLETED:
            return 0
        return max(self.target_count - len(self.records), 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "target_count": self.target_count,
            "found": len(self.records),
            "shortfall": self.shortfall,
            "raw_processed": self.raw_processed,
            "discovered": self.discovered,
            "error": self.error,
            "records": [record.to_dict() for record in self.records],
        }
