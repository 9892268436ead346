"""Scan orchestration: session state, findings and trigger monitoring."""

from .findings import Finding, FindingKind, FindingSource
from .monitor import MailboxWatcher, ScanMonitor
from .orchestrator import ScanOrchestrator, ScanResult
from .presenter import (
    HostEnvironment,
    HostStatus,
    LinkCandidate,
    Presenter,
    SenderCandidate,
)
from .session import ScanSession

__all__ = [
    "Finding",
    "FindingKind",
    "FindingSource",
    "MailboxWatcher",
    "ScanMonitor",
    "ScanOrchestrator",
    "ScanResult",
    "HostEnvironment",
    "HostStatus",
    "LinkCandidate",
    "Presenter",
    "SenderCandidate",
    "ScanSession",
]
