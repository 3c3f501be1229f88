"""
Sync orchestration: fetch, dedup, enrich, materialize, digest.

One run at a time. A trigger that arrives while a run is in flight is
skipped rather than queued. Failures are scoped per memo: a memo that
cannot be written is logged and counted, and the run moves on.
Configuration, retrieval and response-format errors abort the run.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import tzinfo
from typing import Callable, Optional

from .client import MemosClient
from .config import SyncConfig
from .content import ContentEnricher
from .dedup import DedupIndex
from .digest import DigestAggregator
from .errors import MemoSyncError, log_exception
from .files import Materializer
from .logging_config import component_logger
from .providers.base import AIBackend, create_backend
from .providers.llm import NoopBackend
from .retry import RetryPolicy
from .storage import StorageProtocol
from .types import RemoteRecord, SyncSession

ProgressCallback = Callable[[SyncSession, str], None]


@dataclass
class SyncResult:
    """End-of-run status shown to the user."""
    ok: bool = True
    discovered: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    written: list[str] = field(default_factory=list)
    digests: list[str] = field(default_factory=list)
    error: Optional[str] = None
    skipped_run: bool = False

    @property
    def message(self) -> str:
        if self.skipped_run:
            return "Sync already in progress; skipped"
        if not self.ok:
            return f"Sync failed: {self.error}"
        msg = f"Sync complete: {self.processed} memos synced"
        if self.skipped:
            msg += f", {self.skipped} already present"
        if self.failed:
            msg += f", {self.failed} failed"
        if self.digests:
            msg += f", {len(self.digests)} weekly digests"
        return msg


def build_backend(config: SyncConfig, logger: Optional[logging.Logger] = None) -> AIBackend:
    """Backend for the configured provider, or NoopBackend.

    A provider that cannot be constructed (missing key, missing library,
    unreachable server) downgrades to NoopBackend with a warning so the
    memos still sync.
    """
    log = logger or logging.getLogger(__name__)
    if not config.ai.enabled:
        return NoopBackend()
    provider = config.ai.provider_config
    try:
        return create_backend(provider.name, provider.backend_params())
    except (ValueError, RuntimeError, MemoSyncError) as e:
        log.warning("AI provider '%s' unavailable, continuing without AI: %s", provider.name, e)
        return NoopBackend()


class MemoSync:
    """Runs sync passes for one configuration and one store."""

    def __init__(
        self,
        config: SyncConfig,
        storage: StorageProtocol,
        *,
        client: Optional[MemosClient] = None,
        backend: Optional[AIBackend] = None,
        retry: Optional[RetryPolicy] = None,
        tz: Optional[tzinfo] = None,
        verbose: bool = False,
        logger: Optional[logging.Logger] = None,
        progress: Optional[ProgressCallback] = None,
    ):
        self.config = config
        self.storage = storage
        self.verbose = verbose
        self.tz = tz
        self._log = logger or component_logger("sync", verbose)
        self._client = client
        self._backend = backend
        self._retry = retry
        self._progress = progress
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def _report(self, session: SyncSession, message: str = "") -> None:
        if self._progress is not None:
            self._progress(session, message)

    def _components(self):
        client = self._client or MemosClient(
            self.config.api_url,
            self.config.access_token,
            logger=component_logger("client", self.verbose),
        )
        backend = self._backend or build_backend(self.config, component_logger("ai", self.verbose))
        ai = self.config.ai
        root = self.config.sync_root

        enricher = ContentEnricher(
            backend,
            ai_enabled=ai.enabled,
            summary=ai.summary,
            tags=ai.tags,
            language=ai.summary_language,
            retry=self._retry,
            logger=component_logger("content", self.verbose),
        )
        dedup = DedupIndex(self.storage, root, logger=component_logger("dedup", self.verbose))
        materializer = Materializer(
            self.storage, root, client.download_resource,
            tz=self.tz, logger=component_logger("files", self.verbose),
        )
        digests = DigestAggregator(
            self.storage, root, backend,
            retry=self._retry, tz=self.tz,
            logger=component_logger("digest", self.verbose),
        )
        return client, enricher, dedup, materializer, digests

    def run(self) -> SyncResult:
        """Run one sync pass. Returns immediately if another is in flight."""
        if not self._lock.acquire(blocking=False):
            self._log.info("Sync already running; skipping this trigger")
            return SyncResult(skipped_run=True)
        try:
            return self._run()
        finally:
            self._lock.release()

    def _run(self) -> SyncResult:
        session = SyncSession()
        result = SyncResult()
        owns_client = self._client is None
        client = None
        try:
            self.config.validate()
            client, enricher, dedup, materializer, digests = self._components()

            self._report(session, "Fetching memos")
            records = client.fetch_all(self.config.sync_limit)
            session.discovered = len(records)
            self._report(session, f"Found {len(records)} memos")

            bodies = self._sync_records(records, session, result, enricher, dedup, materializer)

            if self.config.ai.enabled and self.config.ai.weekly_digest:
                self._report(session, "Generating weekly digests")
                result.digests = digests.generate_digests(records, bodies)
        except MemoSyncError as e:
            self._log.error("Sync failed: %s", e)
            result.ok = False
            result.error = str(e)
        finally:
            if owns_client and client is not None:
                client.close()

        result.discovered = session.discovered
        result.processed = session.processed
        result.skipped = session.skipped
        result.failed = session.failed
        self._log.info(result.message)
        return result

    def _sync_records(
        self,
        records: list[RemoteRecord],
        session: SyncSession,
        result: SyncResult,
        enricher: ContentEnricher,
        dedup: DedupIndex,
        materializer: Materializer,
    ) -> dict[str, str]:
        """Dedup, enrich and write each record. Returns enriched bodies by name."""
        bodies: dict[str, str] = {}
        for record in records:
            if dedup.exists(record.name):
                self._log.debug("%s already synced, skipping", record.name)
                session.skipped += 1
                self._report(session)
                continue

            enriched = enricher.enrich(record)
            bodies[record.name] = enriched.body
            try:
                path = materializer.materialize(record, enriched)
            except (OSError, ValueError) as e:
                self._log.error("Failed to save %s: %s", record.name, e)
                session.failed += 1
                self._report(session)
                continue

            result.written.append(path)
            session.processed += 1
            self._report(session)
        return bodies

    def run_periodic(
        self,
        interval_seconds: float,
        stop: threading.Event,
        on_result: Optional[Callable[[SyncResult], None]] = None,
    ) -> None:
        """Run a sync now and then every ``interval_seconds`` until ``stop`` is set.

        An unexpected error in one run is logged and reported as a failed
        result; the next run still happens on schedule.
        """
        while not stop.is_set():
            try:
                result = self.run()
            except Exception as e:
                log_path = log_exception(e, "periodic sync")
                self._log.error("Sync run failed unexpectedly: %s (details in %s)", e, log_path)
                result = SyncResult(ok=False, error=str(e))
            if on_result is not None:
                on_result(result)
            stop.wait(interval_seconds)
