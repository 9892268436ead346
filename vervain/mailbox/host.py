"""Mailbox directory host: a folder of ``.eml`` files stands in for the rendered inbox."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, Optional

from ..detection.contacts import TrustedContact
from ..scanner.findings import Finding
from ..scanner.presenter import (
    HostEnvironment,
    HostStatus,
    LinkCandidate,
    Presenter,
    SenderCandidate,
)
from ..scanner.session import ScanSession
from ..storage.settings_store import SettingsStore
from ..utils.domains import extract_hostname
from .message import MailMessage, parse_message

logger = logging.getLogger(__name__)


def _is_web_url(url: str) -> bool:
    return url.lower().startswith(("http://", "https://"))


class MailboxHost(HostEnvironment):
    """Available while the mailbox directory exists and can be listed."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def check(self) -> HostStatus:
        try:
            if not self.directory.is_dir():
                return HostStatus.UNAVAILABLE
            next(iter(self.directory.iterdir()), None)
        except OSError as exc:
            logger.warning("Mailbox %s unreadable: %s", self.directory, exc)
            return HostStatus.ERROR
        return HostStatus.AVAILABLE


class MailboxPresenter(Presenter):
    """
    Presents the messages in a mailbox directory (or an explicit file list).

    Elements are tuples such as ``("sender", "msg.eml")`` or
    ``("link", "msg.eml", 2)``; the container of every candidate is the
    message file name. Warned markers and rendered findings are kept in
    memory for the lifetime of the presenter.
    """

    def __init__(
        self,
        store: SettingsStore,
        session: ScanSession,
        directory: Optional[Path] = None,
        files: Optional[Iterable[Path]] = None,
        on_finding: Optional[Callable[[Finding], None]] = None,
        pattern: str = "*.eml",
    ):
        self.store = store
        self.session = session
        self.directory = Path(directory) if directory else None
        self.files = [Path(f) for f in files] if files else []
        self.on_finding = on_finding
        self.pattern = pattern
        self.rendered: list[Finding] = []
        self._warned: set = set()
        self._parsed: dict[Path, tuple[int, MailMessage]] = {}

    # -- enumeration -----------------------------------------------------

    def _paths(self) -> list[Path]:
        if self.files:
            return list(self.files)
        if self.directory is None:
            return []
        return sorted(self.directory.glob(self.pattern))

    def messages(self) -> list[MailMessage]:
        """Parse (or reuse) every message currently in the mailbox."""
        messages = []
        for path in self._paths():
            try:
                mtime = path.stat().st_mtime_ns
                cached = self._parsed.get(path)
                if cached and cached[0] == mtime:
                    messages.append(cached[1])
                    continue
                message = parse_message(path)
            except OSError as exc:
                logger.warning("Cannot read %s: %s", path, exc)
                continue
            except Exception as exc:
                logger.warning("Cannot parse %s: %s", path, exc)
                continue
            self._parsed[path] = (mtime, message)
            messages.append(message)
        return messages

    def list_sender_candidates(self) -> list[SenderCandidate]:
        return [
            SenderCandidate(
                name=message.sender_name,
                email=message.sender_email,
                element=("sender", message.key),
                container=message.key,
            )
            for message in self.messages()
            if message.sender_email
        ]

    def list_link_candidates(self) -> list[LinkCandidate]:
        candidates = []
        for message in self.messages():
            for index, href in enumerate(message.links):
                if not _is_web_url(href):
                    continue
                candidates.append(
                    LinkCandidate(
                        url=href,
                        host=extract_hostname(href),
                        element=("link", message.key, index),
                        container=message.key,
                    )
                )
        return candidates

    def list_plaintext_url_candidates(self) -> list[LinkCandidate]:
        candidates = []
        for message in self.messages():
            for index, url in enumerate(message.plaintext_urls):
                candidates.append(
                    LinkCandidate(
                        url=url,
                        host=extract_hostname(url),
                        element=("plaintext", message.key, index),
                        container=message.key,
                    )
                )
        return candidates

    # -- presentation ----------------------------------------------------

    def is_already_warned(self, element) -> bool:
        return element in self._warned

    def mark_warned(self, element) -> None:
        self._warned.add(element)

    def render_finding(self, finding: Finding) -> None:
        self.rendered.append(finding)
        if self.on_finding:
            self.on_finding(finding)

    def dismiss(self, finding_id: str) -> None:
        self.session.dismiss(finding_id)

    def clear_warnings(self) -> None:
        """Forget warned markers so the next scan re-evaluates every message."""
        self._warned.clear()

    async def whitelist(self, domain: str) -> None:
        await self.store.whitelist_domain(domain)

    async def add_trusted_contact(self, contact: TrustedContact) -> None:
        await self.store.add_trusted_contact(contact)
