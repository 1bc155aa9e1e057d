"""Pure field extractors for Maps listing pages and business websites.

None of these functions touch a browser. Callers hand in the text, HTML or
link lists they already read from a page, which keeps every heuristic
testable without Playwright.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple
from urllib.parse import parse_qs, urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup

from leadcollector.core.validators import (
    ASSET_SUFFIXES,
    UNDELIVERABLE_LOCAL_PARTS,
    is_generic_email,
    is_platform_domain,
    split_email,
)

EMAIL_REGEX = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)

# Dialling codes for countries whose listings print numbers with a trunk "0".
TRUNK_PREFIX_COUNTRIES = {
    "australia": "61",
    "new zealand": "64",
    "united kingdom": "44",
}

ABOUT_PAGE_KEYWORDS = (
    "about",
    "team",
    "our story",
    "who we are",
    "meet the team",
    "contact",
    "people",
)

OWNER_TITLE_KEYWORDS = (
    "co-founder",
    "founder",
    "owner",
    "proprietor",
    "director",
    "principal",
    "manager",
    "ceo",
    "president",
)

GENERIC_NAME_WORDS = frozenset(
    {
        "project", "business", "team", "contact", "support", "admin", "office",
        "store", "shop", "sales", "info", "general", "us", "our", "hello",
        "enquiries", "email", "phone", "location", "locations", "company",
        "services", "trading", "group", "ltd", "pty", "inc", "llc", "customer",
        "relations", "marketing", "welcome", "home", "privacy", "terms",
        "cookies", "copyright", "headquarters", "menu", "products", "delivery",
        "online",
    }
)
GENERIC_NAME_PHRASES = ("get in touch", "all rights reserved")

SOCIAL_HOSTS = {
    "instagram": ("instagram.com", "instagr.am"),
    "facebook": ("facebook.com", "fb.com"),
}

_LEADING_ICON = re.compile(r"^[^\w\s.,'#\-+/&]+", re.UNICODE)
_CONTROL_CHARS = re.compile(r"[\u0000-\u001F\u007F-\u009F\uFEFF]")
_LEADING_ARTICLE = re.compile(r"^(the|a|an)\s+", re.IGNORECASE)
_TRAILING_FILLER = re.compile(r"\s+(of|and|inc|ltd|pty|group|llc)\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class PageLink:
    href: str
    text: str


def clean_text(text: Optional[str]) -> str:
    """Strip icon glyphs, control characters and odd whitespace from DOM text."""
    if not text:
        return ""
    cleaned = _LEADING_ICON.sub("", text)
    cleaned = "".join(" " if unicodedata.category(ch).startswith("Z") else ch for ch in cleaned)
    cleaned = _CONTROL_CHARS.sub(" ", cleaned)
    return re.sub(r"\s+", " ", cleaned).strip()


def normalize_phone(raw: Optional[str], country: Optional[str], domestic_country: str = "australia") -> str:
    """Return a digits-only phone, rewriting the trunk prefix for the domestic country.

    ``(04) 1234 5678`` in Australia becomes ``61412345678``. Numbers from any
    other country keep their digits unchanged.
    """
    digits = re.sub(r"\D", "", raw or "")
    if not digits:
        return ""

    country_key = (country or "").strip().lower()
    if country_key != domestic_country.strip().lower():
        return digits
    dialling_code = TRUNK_PREFIX_COUNTRIES.get(country_key)
    if dialling_code is None:
        return digits

    if digits.startswith("0"):
        digits = dialling_code + digits[1:]
    elif not digits.startswith(dialling_code) and 8 <= len(digits) <= 10:
        digits = dialling_code + digits

    # "+61 (0)4..." leaves a stray trunk zero after the country code.
    stray = f"{dialling_code}0"
    if digits.startswith(stray) and len(digits) > 10:
        digits = dialling_code + digits[len(stray):]
    return digits


def sanitize_website(raw_url: Optional[str]) -> Optional[str]:
    """Normalise raw website strings into absolute URLs, unwrapping Google redirects."""

    if not raw_url:
        return None

    url = raw_url.strip()
    if not url:
        return None

    parsed = urlparse(url, scheme="https")
    if not parsed.netloc:
        parsed = urlparse(f"https://{url}")

    if not parsed.netloc:
        return None

    if parsed.netloc.lower().endswith("google.com") and parsed.path == "/url":
        target = parse_qs(parsed.query).get("q", [""])[0]
        return sanitize_website(target) if target else None

    normalized_path = parsed.path or "/"
    if not normalized_path.startswith("/"):
        normalized_path = f"/{normalized_path}"

    normalized = parsed._replace(path=normalized_path, fragment="", query="")
    return urlunparse(normalized)


def collect_links(html: str, base_url: str) -> List[PageLink]:
    """Return every anchor on a page as absolute href plus lower-case text."""
    soup = BeautifulSoup(html or "", "html.parser")
    links: List[PageLink] = []
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href:
            continue
        if not href.lower().startswith(("mailto:", "tel:")):
            href = urljoin(base_url, href)
        links.append(PageLink(href=href, text=anchor.get_text(" ", strip=True).lower()))
    return links


def _host(url: str) -> str:
    host = urlparse(url).netloc.lower()
    return host[4:] if host.startswith("www.") else host


def find_about_link(links: Iterable[PageLink], site_url: str) -> Optional[str]:
    """Pick the first same-site link whose text names an about/contact/team page."""
    site_host = _host(site_url)
    candidates = [
        link for link in links if link.href.startswith("http") and _host(link.href) == site_host
    ]
    for keyword in ABOUT_PAGE_KEYWORDS:
        for link in candidates:
            if keyword in link.text:
                return link.href
    return None


def _looks_like_name(candidate: str) -> bool:
    words = candidate.split()
    if not 2 <= len(words) <= 4 or len(candidate) <= 3:
        return False
    for word in words:
        if not any(ch.isalpha() for ch in word):
            return False
        if not (word[0].isupper() or len(word) <= 3):
            return False
    return True


def _is_generic_name(candidate: str) -> bool:
    lowered = candidate.lower()
    if any(phrase in lowered for phrase in GENERIC_NAME_PHRASES):
        return True
    tokens = re.findall(r"[a-z]+", lowered)
    return any(token in GENERIC_NAME_WORDS for token in tokens)


def extract_owner_name(page_text: Optional[str]) -> Optional[str]:
    """Find a person's name written just before a role title such as "Owner".

    Each text line mentioning a role keyword is cut at that keyword; the
    remainder must be 2-4 capitalised words and contain no generic site
    vocabulary ("Contact", "Team", "Pty" ...).
    """
    for line in (page_text or "").splitlines():
        lowered = line.lower()
        for title in OWNER_TITLE_KEYWORDS:
            index = lowered.find(title)
            if index < 0:
                continue
            candidate = line[:index].strip().rstrip(",-|:(").strip()
            candidate = _LEADING_ARTICLE.sub("", candidate).strip()
            candidate = _TRAILING_FILLER.sub("", candidate).strip()
            if _looks_like_name(candidate) and not _is_generic_name(candidate):
                return candidate
    return None


def extract_social_links(links: Iterable[PageLink]) -> Tuple[Optional[str], Optional[str]]:
    """Return the first Instagram and Facebook profile URLs found among ``links``."""
    found = {platform: None for platform in SOCIAL_HOSTS}
    for link in links:
        parsed = urlparse(link.href)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            continue
        host = parsed.netloc.lower()
        for platform, allowed_hosts in SOCIAL_HOSTS.items():
            if found[platform] is None and any(allowed in host for allowed in allowed_hosts):
                found[platform] = urlunparse((parsed.scheme, parsed.netloc, parsed.path.rstrip("/"), "", "", ""))
    return found["instagram"], found["facebook"]


def _acceptable_address(email: str) -> bool:
    parts = split_email(email)
    if parts is None:
        return False
    local, domain = parts
    if local in UNDELIVERABLE_LOCAL_PARTS or domain.endswith(ASSET_SUFFIXES):
        return False
    return not is_platform_domain(domain)


def extract_mailto_emails(links: Iterable[PageLink]) -> List[str]:
    emails: List[str] = []
    for link in links:
        if not link.href.lower().startswith("mailto:"):
            continue
        value = link.href.split(":", 1)[1].split("?", 1)[0].strip().lower()
        if value and value not in emails:
            emails.append(value)
    return emails


def extract_text_emails(text: Optional[str]) -> List[str]:
    emails: List[str] = []
    for match in EMAIL_REGEX.finditer(text or ""):
        value = match.group(0).lower().rstrip(".")
        if value not in emails:
            emails.append(value)
    return emails


def extract_email(links: Iterable[PageLink], page_text: Optional[str]) -> Optional[str]:
    """Choose one address: mailto links win over text matches, personal over generic."""
    for candidates in (extract_mailto_emails(links), extract_text_emails(page_text)):
        accepted = [email for email in candidates if _acceptable_address(email)]
        if accepted:
            personal = [email for email in accepted if not is_generic_email(email)]
            return (personal or accepted)[0]
    return None
