"""Refresh pipeline: fetch, parse, enrich, merge, persist."""
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Optional

import requests

from config import SyncConfig
from processor.enrichment import ClaudeEnricher, Enricher, EnrichmentError
from processor.event_processor import EventProcessor
from processor.models import RefreshResult
from scraper.listing_scraper import ListingScraper
from storage.artifact_store import ArtifactStore, create_store

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RefreshPipeline:
    """
    Runs refresh cycles one at a time.

    A trigger that fires while a cycle is still in flight is skipped rather
    than queued. Every failure aborts the cycle before the write, so the last
    good artifact stays authoritative.
    """

    def __init__(self, config: SyncConfig, scraper: ListingScraper,
                 enricher: Enricher, store: ArtifactStore,
                 processor: Optional[EventProcessor] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.config = config
        self.scraper = scraper
        self.enricher = enricher
        self.store = store
        self.processor = processor or EventProcessor()
        self.clock = clock
        self._cycle_lock = threading.Lock()

    def refresh(self) -> RefreshResult:
        """
        Run one cycle unless another is already running.

        Returns:
            RefreshResult with success flag, persisted event count and reason
        """
        if not self._cycle_lock.acquire(blocking=False):
            logger.warning("Refresh already in progress, skipping this trigger")
            return RefreshResult(success=False, count=0, reason='busy')

        try:
            return self._run_cycle()
        finally:
            self._cycle_lock.release()

    def _run_cycle(self) -> RefreshResult:
        start_time = time.time()
        logger.info("Refresh cycle started", extra={'source_url': self.config.source_url})

        try:
            raw_events = self.scraper.fetch_events(self.config.date_window)
        except requests.RequestException as e:
            logger.error(
                f"Failed to fetch listing: {e}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            return RefreshResult(success=False, count=0, reason='fetch_failed', errors=[str(e)])

        if not raw_events:
            logger.warning("No events parsed, skipping write")
            return RefreshResult(success=False, count=0, reason='no_events')

        try:
            logger.info(f"Enriching {len(raw_events)} events")
            classifications = self.enricher.classify(raw_events)
        except EnrichmentError as e:
            logger.error(
                f"Enrichment failed: {e}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            return RefreshResult(
                success=False, count=0, reason='enrichment_failed', errors=[str(e)]
            )

        events = self.processor.merge_events(raw_events, classifications)

        try:
            self.store.write(events, self.clock())
        except Exception as e:
            logger.error(
                f"Failed to persist events: {e}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            return RefreshResult(success=False, count=0, reason='persist_failed', errors=[str(e)])

        logger.info(
            "Refresh cycle completed successfully",
            extra={
                'events_written': len(events),
                'duration_seconds': round(time.time() - start_time, 2)
            }
        )
        return RefreshResult(success=True, count=len(events), reason='ok')


def build_pipeline(config: SyncConfig) -> RefreshPipeline:
    """
    Wire the default components for a configuration.

    Args:
        config: SyncConfig

    Returns:
        RefreshPipeline ready to run
    """
    scraper = ListingScraper(
        source_url=config.source_url,
        timeout=config.timeout_seconds,
        max_retries=config.fetch_retries
    )
    enricher = ClaudeEnricher(
        api_key=config.anthropic_api_key,
        model=config.anthropic_model,
        max_tokens=config.anthropic_max_tokens,
        chunk_size=config.enrichment_chunk_size
    )
    return RefreshPipeline(config, scraper, enricher, create_store(config))
