"""Contact validation predicates used to decide whether a listing qualifies."""

from __future__ import annotations

import re
from typing import Dict, Optional, Pattern, Tuple

import phonenumbers

# Mobile-only patterns keyed by lower-case country name, applied to digits only.
MOBILE_PATTERNS: Dict[str, Pattern[str]] = {
    "australia": re.compile(r"(?:04\d{8}|614\d{8})"),
    "new zealand": re.compile(r"(?:02\d{7,9}|642\d{7,9})"),
    "united kingdom": re.compile(r"(?:07\d{9}|447\d{9})"),
}

COUNTRY_REGIONS: Dict[str, str] = {
    "australia": "AU",
    "new zealand": "NZ",
    "united kingdom": "GB",
    "uk": "GB",
    "united states": "US",
    "usa": "US",
    "canada": "CA",
    "ireland": "IE",
    "singapore": "SG",
    "malaysia": "MY",
    "indonesia": "ID",
    "philippines": "PH",
    "india": "IN",
    "south africa": "ZA",
    "germany": "DE",
    "france": "FR",
    "spain": "ES",
    "italy": "IT",
    "netherlands": "NL",
}

PLATFORM_DOMAINS = frozenset(
    {
        "gmail.com",
        "googlemail.com",
        "yahoo.com",
        "yahoo.com.au",
        "hotmail.com",
        "outlook.com",
        "live.com",
        "icloud.com",
        "aol.com",
        "bigpond.com",
        "bigpond.net.au",
        "mail.ru",
        "wix.com",
        "wixpress.com",
        "squarespace.com",
        "godaddy.com",
        "weebly.com",
        "wordpress.com",
        "shopify.com",
        "sentry.io",
        "example.com",
        "domain.com",
    }
)

GENERIC_LOCAL_PARTS = frozenset(
    {
        "info",
        "contact",
        "sales",
        "admin",
        "hello",
        "support",
        "office",
        "enquiries",
        "enquiry",
        "mail",
        "team",
    }
)

UNDELIVERABLE_LOCAL_PARTS = frozenset({"noreply", "no-reply", "donotreply", "do-not-reply"})

# Asset names such as logo@2x.png match the address regex; reject them by TLD.
ASSET_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp")

_EMAIL_SHAPE = re.compile(r"^[A-Za-z0-9._%+\-]+@([A-Za-z0-9\-]+\.)+[A-Za-z]{2,}$")


def digits_only(value: Optional[str]) -> str:
    return re.sub(r"\D", "", value or "")


def region_for_country(country: Optional[str]) -> Optional[str]:
    key = (country or "").strip().lower()
    if not key:
        return None
    if len(key) == 2 and key.upper() in phonenumbers.SUPPORTED_REGIONS:
        return key.upper()
    return COUNTRY_REGIONS.get(key)


def is_qualifying_phone(phone: Optional[str], country: Optional[str]) -> bool:
    """Return True when ``phone`` looks like a reachable mobile number for ``country``.

    Countries with a known mobile pattern are matched on digits alone, which
    accepts both the trunk-prefixed and the international form. Other
    countries defer to libphonenumber's number type metadata.
    """
    digits = digits_only(phone)
    if not digits:
        return False

    pattern = MOBILE_PATTERNS.get((country or "").strip().lower())
    if pattern is not None:
        return pattern.fullmatch(digits) is not None

    region = region_for_country(country)
    if region is None:
        return False
    raw = f"+{digits}" if (phone or "").strip().startswith("+") else digits
    try:
        parsed = phonenumbers.parse(raw, region)
    except phonenumbers.NumberParseException:
        return False
    if not phonenumbers.is_valid_number(parsed):
        return False
    return phonenumbers.number_type(parsed) in {
        phonenumbers.PhoneNumberType.MOBILE,
        phonenumbers.PhoneNumberType.FIXED_LINE_OR_MOBILE,
    }


def split_email(email: Optional[str]) -> Optional[Tuple[str, str]]:
    value = (email or "").strip().lower()
    if not _EMAIL_SHAPE.match(value):
        return None
    local, domain = value.rsplit("@", 1)
    return local, domain


def is_platform_domain(domain: str) -> bool:
    domain = domain.lower()
    return any(domain == blocked or domain.endswith(f".{blocked}") for blocked in PLATFORM_DOMAINS)


def is_business_email(email: Optional[str]) -> bool:
    """Return True for an address that plausibly belongs to the business itself."""
    parts = split_email(email)
    if parts is None:
        return False
    local, domain = parts
    if domain.endswith(ASSET_SUFFIXES):
        return False
    if local in UNDELIVERABLE_LOCAL_PARTS:
        return False
    # Generic local parts (info@, sales@) are fine on the business's own domain.
    return not is_platform_domain(domain)


def is_generic_email(email: Optional[str]) -> bool:
    parts = split_email(email)
    return parts is not None and parts[0] in GENERIC_LOCAL_PARTS


def format_e164(phone: Optional[str], country: Optional[str]) -> Optional[str]:
    """Best-effort E.164 rendering of a scraped number, or None when unparseable.

    Numbers written with a leading ``+`` or already starting with the
    country's dialling code are read as international; anything else is read
    as a national number of ``country``.
    """
    digits = digits_only(phone)
    if not digits:
        return None
    international = (f"+{digits}", None)
    region = region_for_country(country)
    if region is None:
        attempts = [international]
    else:
        national = (digits, region)
        dialling_code = str(phonenumbers.country_code_for_region(region))
        written_international = (phone or "").strip().startswith("+")
        if written_international or (digits.startswith(dialling_code) and not digits.startswith("0")):
            attempts = [international, national]
        else:
            attempts = [national, international]
    for raw, hint in attempts:
        try:
            parsed = phonenumbers.parse(raw, hint)
        except phonenumbers.NumberParseException:
            continue
        if phonenumbers.is_possible_number(parsed):
            return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
    return None
