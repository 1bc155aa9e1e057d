import pytest

from leadcollector.core.config import Settings
from leadcollector.core.errors import DetailFetchError, PageError, PageTimeout
from leadcollector.core.events import EventRecorder, RunReporter
from leadcollector.vendors import maps_details
from leadcollector.vendors.maps_details import MapsDetailFetcher

LISTING_URL = "https://www.google.com/maps/place/Acme+Plumbing"

LISTING_FIELDS = {
    maps_details.HEADING: "Acme Plumbing",
    maps_details.ADDRESS_BUTTON: " 12 Smith St, Bondi NSW 2026",
    maps_details.PHONE_BUTTON: " 0412 345 678",
}

HOME_HTML = """
<html><body>
  <a href="/about-us">About Us</a>
  <a href="https://www.instagram.com/acmeplumbing/">Instagram</a>
</body></html>
"""

ABOUT_HTML = """
<html><body>
  <a href="mailto:info@acme.com.au">Email us</a>
  <a href="https://www.facebook.com/acmeplumbing">Facebook</a>
</body></html>
"""


class FakeDetailPage:
    def __init__(self, sites=None, website_href="https://acme.com.au/", heading=True, broken=()):
        self.sites = sites or {}
        self.website_href = website_href
        self.heading = heading
        self.broken = set(broken)
        self.url = "about:blank"
        self.visited = []
        self.wait_modes = []

    def goto(self, url, *, wait_until="domcontentloaded", timeout_ms=None):
        self.visited.append(url)
        self.wait_modes.append(wait_until)
        if url in self.broken:
            raise PageTimeout(f"Timed out loading {url}\nCall log")
        self.url = url

    def wait_for_selector(self, selector, *, timeout_ms):
        if not self.heading:
            raise PageTimeout("h1 never appeared\nCall log")

    def text_of(self, selector):
        return LISTING_FIELDS.get(selector)

    def attribute_of(self, selector, name):
        return self.website_href

    def content(self):
        return self.sites[self.url]["html"]

    def body_text(self):
        return self.sites[self.url]["text"]


def make_fetcher(page):
    recorder = EventRecorder()
    return MapsDetailFetcher(page, Settings(), RunReporter(recorder)), recorder


def test_fetch_details_merges_listing_and_website():
    page = FakeDetailPage(
        sites={
            "https://acme.com.au/": {"html": HOME_HTML, "text": "Welcome"},
            "https://acme.com.au/about-us": {"html": ABOUT_HTML, "text": "Jane Smith, Owner\nCall us"},
        }
    )
    fetcher, _ = make_fetcher(page)

    record = fetcher.fetch_details(LISTING_URL, "australia")

    assert record.business_name == "Acme Plumbing"
    assert record.street_address == "12 Smith St, Bondi NSW 2026"
    assert record.phone == "61412345678"
    assert record.website == "https://acme.com.au/"
    assert record.owner_name == "Jane Smith"
    assert record.email == "info@acme.com.au"
    # Social links are read from the last page visited.
    assert record.facebook_url == "https://www.facebook.com/acmeplumbing"
    assert record.instagram_url is None
    assert page.visited == [LISTING_URL, "https://acme.com.au/", "https://acme.com.au/about-us"]


def test_fetch_details_without_website_skips_website_stage():
    page = FakeDetailPage(website_href=None)
    fetcher, recorder = make_fetcher(page)

    record = fetcher.fetch_details(LISTING_URL, "australia")

    assert record.website is None
    assert record.email is None
    assert page.visited == [LISTING_URL]
    assert any("no website found" in event.payload.get("message", "") for event in recorder.events)


def test_fetch_details_raises_when_heading_never_renders():
    fetcher, _ = make_fetcher(FakeDetailPage(heading=False))

    with pytest.raises(DetailFetchError) as excinfo:
        fetcher.fetch_details(LISTING_URL, "australia")

    assert "h1 never appeared" in str(excinfo.value)
    assert "Call log" not in str(excinfo.value)
    assert isinstance(excinfo.value.cause, PageError)


def test_fetch_details_keeps_listing_fields_when_website_fails():
    page = FakeDetailPage(broken={"https://acme.com.au/"})
    fetcher, recorder = make_fetcher(page)

    record = fetcher.fetch_details(LISTING_URL, "australia")

    assert record.business_name == "Acme Plumbing"
    assert record.phone == "61412345678"
    assert record.email is None
    assert any(event.payload.get("level") == "warning" for event in recorder.events)


def test_fetch_website_marks_degraded_details():
    page = FakeDetailPage(broken={"https://acme.com.au/"})
    fetcher, _ = make_fetcher(page)

    details = fetcher.fetch_website("https://acme.com.au/")

    assert details.degraded is True
    assert details.email is None


def test_fetch_website_searches_current_page_without_about_link():
    page = FakeDetailPage(
        sites={"https://acme.com.au/": {"html": "<a href='/shop'>Shop</a>", "text": "Email sales@acme.com.au"}}
    )
    fetcher, _ = make_fetcher(page)

    details = fetcher.fetch_website("https://acme.com.au/")

    assert details.email == "sales@acme.com.au"
    assert details.visited_url == "https://acme.com.au/"
    assert details.degraded is False


def test_listing_page_waits_for_dom_not_network_idle():
    page = FakeDetailPage(website_href=None)
    fetcher, _ = make_fetcher(page)

    fetcher.fetch_details(LISTING_URL, "australia")

    assert page.wait_modes == ["domcontentloaded"]
