"""Target-seeking collection loop that ties discovery, detailing and qualification together."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, Optional

from leadcollector.core.browser import BrowserPage, BrowserSession, open_browser_session
from leadcollector.core.config import Settings, get_settings
from leadcollector.core.errors import DetailFetchError, SetupError
from leadcollector.core.events import EventSink, RunReporter
from leadcollector.core.models import (
    CollectionRequest,
    CollectionResult,
    QualificationMode,
    RunState,
    RunStatus,
)
from leadcollector.core.qualification import Verdict, qualify
from leadcollector.vendors.maps_details import MapsDetailFetcher
from leadcollector.vendors.maps_listing import MapsListingSource

logger = logging.getLogger(__name__)

SessionFactory = Callable[[Settings], BrowserSession]
ComponentFactory = Callable[[BrowserPage, Settings, RunReporter], object]


class StopReason(str, Enum):
    TARGET_MET = "target_met"
    RAW_CEILING = "raw_ceiling"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"
    SURFACE_EXHAUSTED = "surface_exhausted"
    SURFACE_MISSING = "surface_missing"
    CANCELLED = "cancelled"


class LeadCollector:
    """Collects up to ``target_count`` qualified, unique businesses for one request.

    Each ``run`` opens a single browser session, alternates between asking the
    listing source for a batch of unseen listings and detailing that batch,
    and stops on the first of: target met, global raw ceiling reached, too many
    empty batches, missing results panel, or caller cancellation. The session
    is closed before the terminal event is emitted, whatever the outcome.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        session_factory: SessionFactory = open_browser_session,
        listing_source_factory: ComponentFactory = MapsListingSource,
        detail_fetcher_factory: ComponentFactory = MapsDetailFetcher,
    ) -> None:
        self.settings = settings or get_settings()
        self.session_factory = session_factory
        self.listing_source_factory = listing_source_factory
        self.detail_fetcher_factory = detail_fetcher_factory

    def raw_ceiling(self, target_count: Optional[int]) -> int:
        if target_count is None:
            return self.settings.unbounded_raw_ceiling
        return max(target_count * self.settings.raw_ceiling_multiplier, self.settings.raw_ceiling_floor)

    def batch_size(self, target_count: Optional[int], qualified_found: int, room: int) -> int:
        if target_count is None:
            return room
        remaining = target_count - qualified_found
        wanted = max(remaining * self.settings.batch_amplification, self.settings.batch_floor)
        return min(wanted, room)

    def run(
        self,
        request: CollectionRequest,
        sink: Optional[EventSink] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> CollectionResult:
        reporter = RunReporter(sink)
        state = RunState()
        cancel_event = cancel_event or threading.Event()
        country = request.country or self.settings.domestic_country

        reporter.log(
            f'[Server] Starting search for {request.target_label} *qualified* "{request.category}" '
            f'prospects in "{", ".join(p for p in (request.area_query, request.country) if p)}"'
        )
        if request.qualification_mode is QualificationMode.REQUIRE_EITHER:
            reporter.log("[Server] Qualification: Requiring at least an email OR a phone number.")
        else:
            reporter.log("[Server] Qualification: Requiring BOTH an email AND a phone number.")

        try:
            session = self.session_factory(self.settings)
        except SetupError as exc:
            reporter.log(f"A critical error occurred while starting the browser: {exc}", "error")
            reporter.error(f"Failed to start browser session: {exc}")
            return CollectionResult(RunStatus.ABORTED, request.target_count, error=str(exc))

        failure: Optional[str] = None
        reason: Optional[StopReason] = None
        try:
            listing_source = self.listing_source_factory(session.new_page(), self.settings, reporter)
            detail_fetcher = self.detail_fetcher_factory(session.new_page(), self.settings, reporter)
            reason = self._collect(request, country, state, listing_source, detail_fetcher, reporter, cancel_event)
        except SetupError as exc:
            failure = f"Failed to prepare browser session: {exc}"
        except Exception as exc:  # noqa: BLE001
            logger.exception("Collection run crashed: %s", exc)
            failure = f"Failed to scrape data: {str(exc).splitlines()[0] if str(exc) else type(exc).__name__}"
        finally:
            self._release(session)

        counters = state.counters
        if failure is not None:
            reporter.log(f"A critical error occurred during scraping: {failure}", "error")
            reporter.error(failure)
            return CollectionResult(
                RunStatus.ABORTED,
                request.target_count,
                error=failure,
                raw_processed=counters.raw_processed,
                discovered=len(state.seen_candidate_ids),
            )

        if reason is StopReason.CANCELLED:
            reporter.log("Collection cancelled by the caller. Browser closed.", "warning")
            reporter.error("Collection cancelled")
            return CollectionResult(
                RunStatus.CANCELLED,
                request.target_count,
                error="Collection cancelled",
                raw_processed=counters.raw_processed,
                discovered=len(state.seen_candidate_ids),
            )

        if reason is StopReason.SURFACE_MISSING:
            message = f'No Google Maps results found for "{request.search_query}"'
            reporter.log(message, "error")
            reporter.error(message)
            return CollectionResult(RunStatus.ABORTED, request.target_count, error=message)

        result = CollectionResult(
            RunStatus.COMPLETED,
            request.target_count,
            records=list(state.qualified_records),
            raw_processed=counters.raw_processed,
            discovered=len(state.seen_candidate_ids),
        )
        if result.shortfall:
            reporter.log(
                f"Warning: Could only find {len(result.records)} qualified prospects out of requested "
                f"{request.target_count} within the search limits (processed {counters.raw_processed} raw URLs, "
                f"discovered {result.discovered} unique raw URLs).",
                "warning",
            )
        reporter.log(
            f"Scraping session completed. Found {len(result.records)} qualified prospects "
            f"(Target: {request.target_label}). Browser closed."
        )
        reporter.complete(result.to_dict())
        return result

    @staticmethod
    def _release(session: BrowserSession) -> None:
        try:
            session.close()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Browser session release failed: %s", exc)

    def _collect(
        self,
        request: CollectionRequest,
        country: str,
        state: RunState,
        listing_source,
        detail_fetcher,
        reporter: RunReporter,
        cancel_event: threading.Event,
    ) -> StopReason:
        target = request.target_count
        ceiling = self.raw_ceiling(target)
        max_attempts = self.settings.max_collection_attempts
        counters = state.counters
        reporter.log(
            f"[Server] Target: {request.target_label} qualified prospects. "
            f"Max unique raw URLs to gather & process: {ceiling}."
        )

        while True:
            if cancel_event.is_set():
                return StopReason.CANCELLED
            if target is not None and state.qualified_found >= target:
                return StopReason.TARGET_MET
            if counters.collection_attempts >= max_attempts:
                reporter.log(
                    "   -> Max Maps collection attempts reached and still need qualified leads. Ending collection.",
                    "warning",
                )
                return StopReason.ATTEMPTS_EXHAUSTED
            room = ceiling - len(state.seen_candidate_ids)
            if room <= 0:
                reporter.log(
                    f"   -> No more slots available for new raw URLs (Total unique discovered: "
                    f"{len(state.seen_candidate_ids)}/{ceiling}). Breaking Maps collection loop."
                )
                return StopReason.RAW_CEILING

            wanted = self.batch_size(target, state.qualified_found, room)
            reporter.log(
                f"\nLEVEL 1, Maps Collection: Collecting up to {wanted} *new* unique Google Maps URLs... "
                f"(Total unique discovered so far: {len(state.seen_candidate_ids)})"
            )
            batch = listing_source.discover_batch(request.search_query, wanted, state.seen_candidate_ids)
            counters.scroll_attempts += batch.scrolls

            if batch.surface_missing and not batch.candidate_ids:
                if not state.seen_candidate_ids:
                    return StopReason.SURFACE_MISSING
                reporter.log("   -> Results panel is no longer available. Treating the search as exhausted.")
                return StopReason.SURFACE_EXHAUSTED

            if not batch.candidate_ids:
                counters.collection_attempts += 1
                reporter.log(
                    f"   -> No new unique URLs found from Google Maps in this attempt "
                    f"({counters.collection_attempts}/{max_attempts}). "
                    f"Total unique discovered: {len(state.seen_candidate_ids)}."
                )
                continue

            reporter.log(
                f"-> Discovered {len(batch.candidate_ids)} new raw listings. "
                f"Total unique discovered: {len(state.seen_candidate_ids)}."
            )
            reporter.log(
                f"LEVEL 2: Starting detailed scraping and qualification for this batch of "
                f"{len(batch.candidate_ids)} raw listings..."
            )

            for candidate_id in batch.candidate_ids:
                if cancel_event.is_set():
                    return StopReason.CANCELLED
                self._process_candidate(candidate_id, request, country, state, detail_fetcher, reporter)

                if target is not None and state.qualified_found >= target:
                    reporter.log(f"   -> Target ({target}) met. Stopping further detailed processing.")
                    return StopReason.TARGET_MET
                if counters.raw_processed >= ceiling:
                    reporter.log(
                        f"   -> Max raw URLs processed ({ceiling}) reached. Stopping further detailed processing."
                    )
                    return StopReason.RAW_CEILING

    def _process_candidate(
        self,
        candidate_id: str,
        request: CollectionRequest,
        country: str,
        state: RunState,
        detail_fetcher,
        reporter: RunReporter,
    ) -> None:
        counters = state.counters
        counters.raw_processed += 1
        reporter.log(
            f"\n--- Processing Raw Business {counters.raw_processed} "
            f"(Qualified: {state.qualified_found}/{request.target_label}) ---"
        )

        try:
            raw = detail_fetcher.fetch_details(candidate_id, country)
        except DetailFetchError as exc:
            reporter.log(f"Error getting details from Maps page: {exc}. Skipping this URL.", "error")
            reporter.progress(state.qualified_found, request.target_count)
            return

        reporter.log(f"-> Business: {raw.business_name or 'N/A'}")
        outcome = qualify(raw, request.qualification_mode, country, state)
        if outcome.verdict is Verdict.ACCEPTED:
            reporter.log(
                f"QUALIFIED: Business meets email/phone criteria! ({state.qualified_found}/{request.target_label})",
                "success",
            )
        elif outcome.verdict is Verdict.DUPLICATE:
            reporter.log(f"   DUPLICATE: {raw.business_name or 'N/A'} was already collected in this run.")
        else:
            reporter.log(
                f"   SKIPPED: Business does not meet email/phone criteria "
                f"(phone={'yes' if outcome.has_phone else 'no'}, email={'yes' if outcome.has_email else 'no'})."
            )
        reporter.progress(state.qualified_found, request.target_count)
