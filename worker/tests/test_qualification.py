import pytest

from leadcollector.core.models import QualificationMode, RawBusinessRecord, RunState
from leadcollector.core.qualification import Verdict, meets_mode, qualify


def _raw(**overrides):
    fields = {
        "business_name": "Acme Plumbing",
        "website": "https://acme.com.au/",
        "phone": "61412345678",
        "email": "jane@acme.com.au",
        "listing_url": "https://www.google.com/maps/place/acme",
    }
    fields.update(overrides)
    return RawBusinessRecord(**fields)


@pytest.mark.parametrize(
    "has_phone, has_email, mode, expected",
    [
        (True, True, QualificationMode.REQUIRE_BOTH, True),
        (True, False, QualificationMode.REQUIRE_BOTH, False),
        (False, True, QualificationMode.REQUIRE_BOTH, False),
        (True, False, QualificationMode.REQUIRE_EITHER, True),
        (False, True, QualificationMode.REQUIRE_EITHER, True),
        (False, False, QualificationMode.REQUIRE_EITHER, False),
    ],
)
def test_meets_mode(has_phone, has_email, mode, expected):
    assert meets_mode(has_phone, has_email, mode) is expected


def test_qualify_accepts_and_records_identity_key():
    state = RunState()

    outcome = qualify(_raw(), QualificationMode.REQUIRE_BOTH, "australia", state)

    assert outcome.verdict is Verdict.ACCEPTED
    assert outcome.record.normalized_phone == "+61412345678"
    assert state.qualified_found == 1
    assert state.accepted_identity_keys == {"acme plumbing|https://acme.com.au/"}


def test_qualify_is_idempotent_for_same_identity():
    state = RunState()
    qualify(_raw(), QualificationMode.REQUIRE_BOTH, "australia", state)

    outcome = qualify(
        _raw(business_name="ACME Plumbing ", phone="0412 345 678"),
        QualificationMode.REQUIRE_BOTH,
        "australia",
        state,
    )

    assert outcome.verdict is Verdict.DUPLICATE
    assert state.qualified_found == 1


def test_qualify_rejects_without_touching_state():
    state = RunState()

    outcome = qualify(_raw(email="jane@gmail.com"), QualificationMode.REQUIRE_BOTH, "australia", state)

    assert outcome.verdict is Verdict.REJECTED
    assert outcome.has_phone is True
    assert outcome.has_email is False
    assert state.qualified_found == 0
    assert not state.accepted_identity_keys


def test_qualify_either_mode_accepts_landline_business_with_email():
    state = RunState()

    outcome = qualify(_raw(phone="61298765432"), QualificationMode.REQUIRE_EITHER, "australia", state)

    assert outcome.accepted
    assert outcome.has_phone is False


def test_qualify_accepts_every_record_with_empty_identity_key():
    state = RunState()
    anonymous = dict(business_name=None, website=None)

    first = qualify(_raw(**anonymous), QualificationMode.REQUIRE_BOTH, "australia", state)
    second = qualify(_raw(**anonymous), QualificationMode.REQUIRE_BOTH, "australia", state)

    assert first.accepted and second.accepted
    assert state.qualified_found == 2
    assert state.accepted_identity_keys == set()


def test_qualify_stores_national_number_in_e164_for_its_country():
    state = RunState()
    raw = RawBusinessRecord(business_name="Loop Diner", phone="3128675309", email="owner@loopdiner.com")

    outcome = qualify(raw, QualificationMode.REQUIRE_BOTH, "united states", state)

    assert outcome.accepted
    assert outcome.record.normalized_phone == "+13128675309"
