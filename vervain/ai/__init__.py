"""Optional AI phishing analysis."""

from .client import AIAnalyzer, AIVerdict, label_for_confidence, parse_reply
from .prompt import SYSTEM_PROMPT, EmailFields, build_user_message

__all__ = [
    "AIAnalyzer",
    "AIVerdict",
    "label_for_confidence",
    "parse_reply",
    "SYSTEM_PROMPT",
    "EmailFields",
    "build_user_message",
]
