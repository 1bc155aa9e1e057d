"""Two-stage detail fetching: the Maps listing page, then the business website."""

from __future__ import annotations

import logging

from leadcollector.core.browser import BrowserPage
from leadcollector.core.config import Settings
from leadcollector.core.errors import DetailFetchError, PageError
from leadcollector.core.events import RunReporter
from leadcollector.core.models import RawBusinessRecord, WebsiteDetails
from leadcollector.etl.extractors import (
    clean_text,
    collect_links,
    extract_email,
    extract_owner_name,
    extract_social_links,
    find_about_link,
    normalize_phone,
    sanitize_website,
)

logger = logging.getLogger(__name__)

HEADING = "h1"
ADDRESS_BUTTON = 'button[data-item-id="address"]'
WEBSITE_LINK = 'a[data-item-id="authority"]'
PHONE_BUTTON = 'button[data-item-id*="phone"]'


class MapsDetailFetcher:
    """Turns one listing URL into a ``RawBusinessRecord``.

    Only a listing page that never renders its heading is fatal for the
    candidate (``DetailFetchError``). Anything that goes wrong on the business
    website leaves the website fields empty.
    """

    def __init__(self, page: BrowserPage, settings: Settings, reporter: RunReporter) -> None:
        self.page = page
        self.settings = settings
        self.reporter = reporter

    def fetch_details(self, candidate_id: str, country: str) -> RawBusinessRecord:
        record = self.fetch_listing(candidate_id, country)
        if record.website:
            self.reporter.log(f"LEVEL 3: Visiting website ({record.website}) for contact details...")
            details = self.fetch_website(record.website)
            record.merge_website(details)
            self.reporter.log(
                f"-> Owner: {record.owner_name or 'Not found'}, Email: {record.email or 'None'}"
            )
        else:
            self.reporter.log("LEVEL 3: Skipped, no website found (from Google Maps).")
        return record

    def fetch_listing(self, candidate_id: str, country: str) -> RawBusinessRecord:
        try:
            self.page.goto(candidate_id)
            self.page.wait_for_selector(HEADING, timeout_ms=self.settings.heading_timeout_ms)
            name = self.page.text_of(HEADING)
            address = self.page.text_of(ADDRESS_BUTTON)
            website = self.page.attribute_of(WEBSITE_LINK, "href")
            phone = self.page.text_of(PHONE_BUTTON)
            listing_url = self.page.url
        except PageError as exc:
            raise DetailFetchError(candidate_id, exc) from exc

        return RawBusinessRecord(
            business_name=clean_text(name) or None,
            street_address=clean_text(address) or None,
            website=sanitize_website(website),
            phone=normalize_phone(phone, country, self.settings.domestic_country) or None,
            listing_url=listing_url or candidate_id,
        )

    def fetch_website(self, website: str) -> WebsiteDetails:
        try:
            self.page.goto(website)
            links = collect_links(self.page.content(), self.page.url)
            about_url = find_about_link(links, self.page.url)
            if about_url:
                self.reporter.log(f"   -> Found about/contact page link, navigating to: {about_url}...")
                self.page.goto(about_url)
                links = collect_links(self.page.content(), self.page.url)
            else:
                self.reporter.log('   -> No specific "About Us/Contact" page link found, searching current page.')
            page_text = self.page.body_text()
            visited_url = self.page.url
        except PageError as exc:
            first_line = str(exc).split("\n", 1)[0]
            self.reporter.log(f"   -> Could not fully scrape {website}. Error: {first_line}", "warning")
            return WebsiteDetails(degraded=True)

        instagram_url, facebook_url = extract_social_links(links)
        return WebsiteDetails(
            owner_name=extract_owner_name(page_text),
            email=extract_email(links, page_text),
            instagram_url=instagram_url,
            facebook_url=facebook_url,
            visited_url=visited_url,
        )
