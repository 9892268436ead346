"""Scan orchestration.

One scan enumerates the rendered senders and links, runs the contact matcher
and the domain classifier over them, and hands bounded, deduplicated findings
to the presenter. At most one scan runs at a time; a trigger that arrives
while a scan is in flight is dropped, not queued.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Optional

from ..constants import DEFAULT_LINK_ALERT_LIMIT
from ..detection.contacts import check as check_contact
from ..detection.similarity import NOT_SUSPICIOUS, DomainVerdict, MatchRule, is_similar
from ..detection.variations import VariationCatalog, generate_variations
from ..errors import InvalidCandidate
from ..storage.cache import SettingsCache
from ..storage.models import SettingsSnapshot
from ..storage.settings_store import SettingsStore
from ..utils.domains import domain_listed, extract_domain, extract_hostname, is_same_or_subdomain
from .findings import Finding, FindingKind, FindingSource
from .presenter import HostEnvironment, HostStatus, LinkCandidate, Presenter, SenderCandidate
from .session import ScanSession

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    """Outcome of one scan request."""

    findings: list[Finding] = field(default_factory=list)
    alerts: list[Finding] = field(default_factory=list)
    skipped_reason: Optional[str] = None

    @property
    def ran(self) -> bool:
        return self.skipped_reason is None


@dataclass
class _ScanState:
    snapshot: SettingsSnapshot
    result: ScanResult
    alerted_ids: set[str] = field(default_factory=set)
    link_matches: Counter = field(default_factory=Counter)


class ScanOrchestrator:
    """Runs detection passes over whatever the presenter currently renders."""

    def __init__(
        self,
        store: SettingsStore,
        presenter: Presenter,
        host: HostEnvironment,
        cache: Optional[SettingsCache] = None,
        session: Optional[ScanSession] = None,
        link_alert_limit: int = DEFAULT_LINK_ALERT_LIMIT,
    ):
        self.store = store
        self.presenter = presenter
        self.host = host
        self.cache = cache or SettingsCache()
        self.session = session or ScanSession()
        self.link_alert_limit = max(0, int(link_alert_limit))
        self._catalog: Optional[VariationCatalog] = None
        self.stats: Counter = Counter()

    # -- public API ------------------------------------------------------

    async def scan(self) -> ScanResult:
        """Run one detection pass; never raises."""
        if self.session.scanning:
            logger.debug("Scan already in progress; dropping trigger")
            self.stats["dropped"] += 1
            return ScanResult(skipped_reason="busy")

        self.session.scanning = True
        try:
            return await self._scan()
        except Exception as exc:
            logger.exception("Scan failed: %s", exc)
            self.stats["errors"] += 1
            return ScanResult(skipped_reason="error")
        finally:
            self.session.scanning = False

    def dismiss(self, finding_id: str) -> None:
        self.session.dismiss(finding_id)

    def reload(self) -> None:
        """Hosting page reloaded: dismissals no longer apply."""
        self.session.reload()

    # -- scan phases -----------------------------------------------------

    async def _scan(self) -> ScanResult:
        snapshot = await self._resolve_settings()
        if snapshot is None:
            return ScanResult(skipped_reason="no_settings")

        reason = self._gate(snapshot)
        if reason:
            logger.debug("Scan skipped: %s", reason)
            return ScanResult(skipped_reason=reason)

        self.stats["scans"] += 1
        state = _ScanState(snapshot=snapshot, result=ScanResult())
        contacts_on = snapshot.contact_detection_enabled and bool(snapshot.trusted_contacts)
        domains_on = snapshot.domain_detection_enabled and bool(snapshot.protected_domains)

        for sender in self.presenter.list_sender_candidates():
            try:
                await self._check_sender(sender, state, contacts_on, domains_on)
            except Exception as exc:
                logger.warning("Error checking sender %s: %s", sender.email, exc)

        if domains_on:
            for link in self.presenter.list_link_candidates():
                self._check_link_safely(link, FindingSource.LINK, state)
            for link in self.presenter.list_plaintext_url_candidates():
                self._check_link_safely(link, FindingSource.PLAINTEXT, state)

        result = state.result
        self.stats["findings"] += len(result.findings)
        self.stats["alerts"] += len(result.alerts)
        if result.alerts:
            await self._record_alerts(len(result.alerts))
        return result

    async def _resolve_settings(self) -> Optional[SettingsSnapshot]:
        """Fresh snapshot when the host is available, otherwise the cache."""
        try:
            status = self.host.check()
        except Exception as exc:
            logger.warning("Host check failed: %s", exc)
            status = HostStatus.ERROR

        if status == HostStatus.AVAILABLE:
            try:
                snapshot = await self.store.get_settings()
            except Exception as exc:
                logger.warning("Settings store unavailable (%s); using cached settings", exc)
            else:
                self.cache.save(snapshot)
                return snapshot
        else:
            logger.info("Host %s; using cached settings", status.value)

        self.stats["cache_fallbacks"] += 1
        cached = self.cache.load()
        if cached is None:
            logger.info("No cached settings available; skipping scan")
        return cached

    @staticmethod
    def _gate(snapshot: SettingsSnapshot) -> Optional[str]:
        if not snapshot.domain_detection_enabled and not snapshot.contact_detection_enabled:
            return "disabled"
        if not snapshot.has_targets:
            return "no_targets"
        if not snapshot.setup_complete and not snapshot.trusted_contacts:
            return "setup_incomplete"
        return None

    # -- senders ---------------------------------------------------------

    async def _check_sender(
        self,
        sender: SenderCandidate,
        state: _ScanState,
        contacts_on: bool,
        domains_on: bool,
    ) -> None:
        if self.presenter.is_already_warned(sender.element):
            return
        email = (sender.email or "").strip()
        if not email:
            return
        snapshot = state.snapshot

        if contacts_on:
            trusted_email = self._match_contact(sender, snapshot)
            if trusted_email:
                self._emit(
                    Finding(
                        kind=FindingKind.CONTACT,
                        source=FindingSource.SENDER,
                        subject=email,
                        suspicious_domain=extract_domain(email),
                        sender_name=sender.name,
                        trusted_email=trusted_email,
                        element=sender.element,
                        container=sender.container,
                    ),
                    state,
                )
                if snapshot.auto_add_domains:
                    await self._auto_whitelist(extract_domain(email), trusted_email, snapshot)
                return

        if not domains_on:
            return

        domain = extract_domain(email)
        if not domain:
            logger.debug("Skipping sender without a domain: %s", email)
            return
        if domain_listed(domain, snapshot.whitelisted_domains):
            return
        if domain_listed(domain, snapshot.blocked_domains):
            self._emit(
                Finding(
                    kind=FindingKind.BLOCKED,
                    source=FindingSource.SENDER,
                    subject=email,
                    suspicious_domain=domain,
                    sender_name=sender.name,
                    element=sender.element,
                    container=sender.container,
                ),
                state,
            )
            return

        protected = snapshot.protected_domains
        if any(is_same_or_subdomain(domain, p) for p in protected):
            return

        for protected_domain in protected:
            verdict = self._classify(domain, protected_domain)
            if verdict:
                self._emit_domain(email, domain, protected_domain, verdict.rule, sender, state)
                return

        catalog = self._catalog_for(snapshot)
        if catalog and catalog.is_known_variation(domain):
            self._emit_domain(
                email, domain, snapshot.primary_domain, MatchRule.KNOWN_VARIATION, sender, state
            )

    def _match_contact(self, sender: SenderCandidate, snapshot: SettingsSnapshot) -> Optional[str]:
        try:
            return check_contact(sender.name, sender.email, snapshot.trusted_contacts)
        except Exception as exc:
            logger.warning("Contact check failed for %s: %s", sender.email, exc)
            return None

    def _emit_domain(
        self,
        email: str,
        domain: str,
        protected_domain: str,
        rule: Optional[MatchRule],
        sender: SenderCandidate,
        state: _ScanState,
    ) -> None:
        self._emit(
            Finding(
                kind=FindingKind.DOMAIN,
                source=FindingSource.SENDER,
                subject=email,
                suspicious_domain=domain,
                protected_domain=protected_domain,
                sender_name=sender.name,
                rule=rule,
                element=sender.element,
                container=sender.container,
            ),
            state,
        )

    async def _auto_whitelist(self, domain: str, trusted_email: str, snapshot: SettingsSnapshot) -> None:
        if not domain or domain in snapshot.whitelisted_domains:
            return
        try:
            if await self.store.whitelist_domain(domain):
                logger.warning("Auto-added %s to the whitelist after it spoofed %s", domain, trusted_email)
        except Exception as exc:
            logger.warning("Failed to auto-add %s to the whitelist: %s", domain, exc)

    # -- links -----------------------------------------------------------

    def _check_link_safely(self, link: LinkCandidate, source: FindingSource, state: _ScanState) -> None:
        try:
            self._check_link(link, source, state)
        except InvalidCandidate as exc:
            logger.debug("Skipping link: %s", exc)
        except Exception as exc:
            logger.warning("Error checking link %s: %s", link.url, exc)

    def _check_link(self, link: LinkCandidate, source: FindingSource, state: _ScanState) -> None:
        if self.presenter.is_already_warned(link.element):
            return
        url = (link.url or "").strip()
        if not url or url.lower().startswith("mailto:"):
            return
        host = (link.host or extract_hostname(url)).strip().lower()
        if not host:
            raise InvalidCandidate(f"no host in {url!r}")

        snapshot = state.snapshot
        if domain_listed(host, snapshot.whitelisted_domains):
            return
        protected = snapshot.protected_domains
        if any(is_same_or_subdomain(host, p) for p in protected):
            return

        for protected_domain in protected:
            verdict = self._classify(host, protected_domain)
            if not verdict:
                continue
            container = self._container_key(link.container)
            alert = state.link_matches[container] < self.link_alert_limit
            state.link_matches[container] += 1
            self._emit(
                Finding(
                    kind=FindingKind.DOMAIN,
                    source=source,
                    subject=url,
                    suspicious_domain=host,
                    protected_domain=protected_domain,
                    rule=verdict.rule,
                    element=link.element,
                    container=link.container,
                ),
                state,
                alert=alert,
            )
            return

    @staticmethod
    def _container_key(container: Any) -> Any:
        try:
            hash(container)
        except TypeError:
            return id(container)
        return container

    # -- helpers ---------------------------------------------------------

    @staticmethod
    def _classify(candidate: str, protected: str) -> DomainVerdict:
        try:
            return is_similar(candidate, protected)
        except Exception as exc:
            logger.warning("Similarity check failed for %s vs %s: %s", candidate, protected, exc)
            return NOT_SUSPICIOUS

    def _catalog_for(self, snapshot: SettingsSnapshot) -> Optional[VariationCatalog]:
        """Variation catalog for the primary domain, rebuilt only when it changes."""
        primary = snapshot.primary_domain
        if not primary:
            return None
        if self._catalog is None or self._catalog.primary_domain != primary:
            variations = snapshot.variations or generate_variations(primary)
            self._catalog = VariationCatalog(primary, variations)
        return self._catalog

    def _emit(self, finding: Finding, state: _ScanState, alert: bool = True) -> None:
        """Mark the element, then render unless dismissed or already alerted."""
        state.result.findings.append(finding)
        logger.warning("Finding: %s", finding.describe())

        with self.session.self_mutation():
            if finding.element is not None:
                self.presenter.mark_warned(finding.element)

            if not alert:
                logger.debug("Alert limit reached; marked only: %s", finding.subject)
                return
            finding_id = finding.finding_id
            if self.session.is_dismissed(finding_id):
                logger.debug("Suppressed dismissed finding %s", finding_id)
                return
            if finding_id in state.alerted_ids:
                return
            state.alerted_ids.add(finding_id)
            self.presenter.render_finding(finding)
            state.result.alerts.append(finding)

    async def _record_alerts(self, count: int) -> None:
        try:
            await self.store.increment_alerts_count(count)
        except Exception as exc:
            logger.debug("Could not update alert counter: %s", exc)
