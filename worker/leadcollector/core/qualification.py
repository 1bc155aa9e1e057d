"""Qualification and de-duplication of merged business records."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from leadcollector.core.models import QualificationMode, QualifiedRecord, RawBusinessRecord, RunState
from leadcollector.core.validators import format_e164, is_business_email, is_qualifying_phone

logger = logging.getLogger(__name__)


class Verdict(str, Enum):
    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"


@dataclass(frozen=True)
class QualificationOutcome:
    verdict: Verdict
    has_phone: bool
    has_email: bool
    record: Optional[QualifiedRecord] = None

    @property
    def accepted(self) -> bool:
        return self.verdict is Verdict.ACCEPTED


def meets_mode(has_phone: bool, has_email: bool, mode: QualificationMode) -> bool:
    if mode is QualificationMode.REQUIRE_EITHER:
        return has_phone or has_email
    return has_phone and has_email


def qualify(raw: RawBusinessRecord, mode: QualificationMode, country: str, state: RunState) -> QualificationOutcome:
    """Decide whether ``raw`` joins the run's result set.

    Accepted records are appended to ``state.qualified_records``. A record
    whose identity key was already accepted is a duplicate and leaves the
    state untouched. Records with an empty key (no name and no website) cannot
    be de-duplicated and are always accepted when they qualify.
    """
    has_phone = is_qualifying_phone(raw.phone, country)
    has_email = is_business_email(raw.email)

    if not meets_mode(has_phone, has_email, mode):
        return QualificationOutcome(Verdict.REJECTED, has_phone, has_email)

    key = raw.identity_key
    if key and key in state.accepted_identity_keys:
        logger.debug("Duplicate identity key %s", key)
        return QualificationOutcome(Verdict.DUPLICATE, has_phone, has_email)

    record = QualifiedRecord.from_raw(raw, normalized_phone=format_e164(raw.phone, country))
    if key:
        state.accepted_identity_keys.add(key)
    state.qualified_records.append(record)
    return QualificationOutcome(Verdict.ACCEPTED, has_phone, has_email, record)
