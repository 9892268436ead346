"""Parsing of stored email messages into scan candidates."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from email import message_from_bytes, policy
from email.message import EmailMessage
from email.utils import parseaddr
from html.parser import HTMLParser
from pathlib import Path

from ..utils.domains import extract_plaintext_urls

logger = logging.getLogger(__name__)

_SKIP_TAGS = {"script", "style", "noscript", "svg", "head", "title"}


class _LinkCollector(HTMLParser):
    """
    Collect anchor hrefs, the visible text and the URLs written in it.

    A URL shown as anchor text counts as plain text unless it is the
    anchor's own href.
    """

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.links: list[str] = []
        self.urls: list[str] = []
        self._chunks: list[str] = []
        self._skip_depth = 0
        self._anchor_depth = 0
        self._anchor_href = ""
        self._anchor_text: list[str] = []

    def handle_starttag(self, tag: str, attrs) -> None:  # type: ignore[override]
        if tag in _SKIP_TAGS:
            self._skip_depth += 1
        elif tag == "a":
            self._anchor_depth += 1
            href = (dict(attrs).get("href") or "").strip()
            if href:
                self.links.append(href)
            if self._anchor_depth == 1:
                self._anchor_href = href
                self._anchor_text = []

    def handle_endtag(self, tag: str) -> None:  # type: ignore[override]
        if tag in _SKIP_TAGS and self._skip_depth:
            self._skip_depth -= 1
        elif tag == "a" and self._anchor_depth:
            self._anchor_depth -= 1
            if not self._anchor_depth:
                self._close_anchor()

    def handle_data(self, data: str) -> None:  # type: ignore[override]
        if self._skip_depth or not data or not data.strip():
            return
        self._chunks.append(data)
        if self._anchor_depth:
            self._anchor_text.append(data)
        else:
            self.urls.extend(extract_plaintext_urls(data))

    def _close_anchor(self) -> None:
        href = self._anchor_href.rstrip("/")
        for url in extract_plaintext_urls(" ".join(self._anchor_text)):
            if url.rstrip("/") != href:
                self.urls.append(url)
        self._anchor_href = ""
        self._anchor_text = []

    def close(self) -> None:
        super().close()
        if self._anchor_depth:
            self._anchor_depth = 0
            self._close_anchor()

    def text(self) -> str:
        return " ".join(self._chunks)


@dataclass
class MailMessage:
    """The parts of a message the scanner looks at."""

    path: Path
    sender_name: str = ""
    sender_email: str = ""
    subject: str = ""
    links: list[str] = field(default_factory=list)
    text: str = ""
    html: str = ""
    # URLs written as visible text, including anchor text that differs from its href.
    plaintext_urls: list[str] = field(default_factory=list)

    @property
    def key(self) -> str:
        return self.path.name


def _part_text(part: EmailMessage) -> str:
    try:
        content = part.get_content()
    except (LookupError, UnicodeError, KeyError) as exc:
        logger.debug("Falling back to raw payload decode: %s", exc)
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    return str(content)


def parse_bytes(data: bytes, path: Path) -> MailMessage:
    """Parse raw RFC 5322 bytes."""
    msg = message_from_bytes(data, policy=policy.default)
    try:
        raw_from = str(msg.get("From", "") or "")
        subject = str(msg.get("Subject", "") or "")
    except Exception as exc:
        logger.warning("Unreadable headers in %s: %s", path, exc)
        raw_from, subject = "", ""
    name, address = parseaddr(raw_from)

    text_chunks: list[str] = []
    html_chunks: list[str] = []
    links: list[str] = []
    urls: list[str] = []
    for part in msg.walk():
        if part.is_multipart() or part.get_content_disposition() == "attachment":
            continue
        ctype = part.get_content_type()
        if ctype == "text/plain":
            body = _part_text(part)
            text_chunks.append(body)
            urls.extend(extract_plaintext_urls(body))
        elif ctype == "text/html":
            html = _part_text(part)
            html_chunks.append(html)
            collector = _LinkCollector()
            collector.feed(html)
            collector.close()
            links.extend(collector.links)
            urls.extend(collector.urls)
            text_chunks.append(collector.text())

    return MailMessage(
        path=path,
        sender_name=name.strip(),
        sender_email=address.strip(),
        subject=subject.strip(),
        links=links,
        text="\n".join(chunk for chunk in text_chunks if chunk),
        html="\n".join(html_chunks),
        plaintext_urls=urls,
    )


def parse_message(path: Path) -> MailMessage:
    """Read and parse one ``.eml`` file."""
    path = Path(path)
    return parse_bytes(path.read_bytes(), path)
