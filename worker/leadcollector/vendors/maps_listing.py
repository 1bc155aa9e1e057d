"""Google Maps search results as an incremental source of listing URLs."""

from __future__ import annotations

import logging
from typing import Set

from leadcollector.core.browser import BrowserPage
from leadcollector.core.config import Settings
from leadcollector.core.errors import PageError
from leadcollector.core.events import RunReporter
from leadcollector.core.models import DiscoveryBatch

logger = logging.getLogger(__name__)

MAPS_HOME_URL = "https://www.google.com/maps"
CONSENT_BUTTON = 'form[action^="https://consent.google.com"] button[aria-label="Accept all"]'
SEARCH_BOX = "#searchboxinput"
RESULTS_FEED = 'div[role="feed"]'
LISTING_LINKS = f'{RESULTS_FEED} a[href*="/maps/place/"]'
CONSENT_TIMEOUT_MS = 15000
INPUT_TIMEOUT_MS = 15000


class MapsListingSource:
    """Scrolls one Maps results panel and hands out listing URLs it has not seen.

    The search is submitted on the first call only; later calls keep
    scrolling the same panel. The panel has no explicit end marker, so a run
    of ``max_idle_scrolls`` iterations with neither a new URL nor a taller
    panel is treated as exhaustion.
    """

    def __init__(self, page: BrowserPage, settings: Settings, reporter: RunReporter) -> None:
        self.page = page
        self.settings = settings
        self.reporter = reporter
        self._searched_query = None
        self._surface_missing = False
        self._last_scroll_height = 0

    def _accept_consent(self) -> None:
        try:
            self.page.wait_for_selector(CONSENT_BUTTON, timeout_ms=CONSENT_TIMEOUT_MS)
            self.page.click(CONSENT_BUTTON, timeout_ms=CONSENT_TIMEOUT_MS)
        except PageError:
            return
        self.reporter.log("   -> Accepted Google consent dialog.")

    def _open_search(self, query: str) -> bool:
        self._searched_query = query
        try:
            self.page.goto(MAPS_HOME_URL)
            self._accept_consent()
            self.page.fill(SEARCH_BOX, query, timeout_ms=INPUT_TIMEOUT_MS)
            self.page.press(SEARCH_BOX, "Enter", timeout_ms=INPUT_TIMEOUT_MS)
            self.page.wait_for_selector(RESULTS_FEED, timeout_ms=self.settings.results_timeout_ms)
        except PageError as exc:
            logger.warning("Maps results panel unavailable for %r: %s", query, exc)
            self.reporter.log(
                "Error: Google Maps results container not found after search. Cannot collect URLs.", "error"
            )
            self._surface_missing = True
            return False
        self.reporter.log("   -> Initial search results container loaded.")
        return True

    def discover_batch(self, query: str, batch_size_hint: int, seen_ids: Set[str]) -> DiscoveryBatch:
        """Scroll until ``batch_size_hint`` unseen URLs are found or the panel stops growing.

        New URLs are added to ``seen_ids`` as they are found, so a URL is
        handed out at most once per run.
        """
        batch = DiscoveryBatch()
        if self._searched_query != query and not self._open_search(query):
            batch.surface_missing = True
            return batch
        if self._surface_missing:
            batch.surface_missing = True
            return batch

        idle_scrolls = 0
        max_scrolls = self.settings.max_scroll_attempts
        max_idle = self.settings.max_idle_scrolls

        while batch.scrolls < max_scrolls and len(batch) < batch_size_hint and idle_scrolls < max_idle:
            try:
                if not self.page.exists(RESULTS_FEED):
                    self.reporter.log(
                        "Error: Google Maps results container disappeared during scroll check. Stopping collection.",
                        "error",
                    )
                    break
                found_before = len(batch)
                for url in self.page.hrefs(LISTING_LINKS):
                    if len(batch) >= batch_size_hint:
                        break
                    if url and url not in seen_ids:
                        seen_ids.add(url)
                        batch.candidate_ids.append(url)
                new_urls = len(batch) - found_before
                if len(batch) >= batch_size_hint:
                    self.reporter.log(
                        f"   -> Discovered {new_urls} new unique URLs. Batch full ({len(batch)}/{batch_size_hint})."
                    )
                    break

                self.page.scroll_to_bottom(RESULTS_FEED)
                self.page.wait(self.settings.scroll_settle_ms)
                batch.scrolls += 1
                scroll_height = self.page.scroll_height(RESULTS_FEED)
            except PageError as exc:
                logger.warning("Results panel failed while scrolling: %s", exc)
                break

            grew = scroll_height > self._last_scroll_height
            self._last_scroll_height = scroll_height
            if new_urls or grew:
                idle_scrolls = 0
                if new_urls:
                    self.reporter.log(
                        f"   -> Discovered {new_urls} new unique URLs. Total in batch: {len(batch)}/{batch_size_hint}."
                    )
                else:
                    self.reporter.log(
                        "   -> Scrolled further, but no *new* unique URLs in this section. "
                        f"Total in batch: {len(batch)}/{batch_size_hint}."
                    )
            else:
                idle_scrolls += 1
                self.reporter.log(
                    f"   -> No new unique URLs and no scroll progress. Consecutive attempts: {idle_scrolls}/{max_idle}. "
                    f"(Total scrolls: {batch.scrolls}, Total in batch: {len(batch)}/{batch_size_hint})"
                )

        if idle_scrolls >= max_idle:
            self.reporter.log(
                "   -> Max consecutive attempts without any progress reached. Assuming end of results in this area."
            )
        elif batch.scrolls >= max_scrolls:
            self.reporter.log(
                f"Warning: Reached maximum total scroll attempts ({max_scrolls}) during Maps collection.", "warning"
            )
        self.reporter.log(
            f"   -> Finished Maps collection for this attempt. Found {len(batch)} new unique URLs "
            f"after {batch.scrolls} scrolls."
        )
        return batch
