"""Shared constants for Vervain."""

# Interactive link alerts per message container; extra matches are only marked.
DEFAULT_LINK_ALERT_LIMIT = 3

# Delay before the first scan after startup (seconds).
DEFAULT_INITIAL_SCAN_DELAY = 1.0

# Window in which content-changed notifications coalesce into one scan (seconds).
DEFAULT_SCAN_DEBOUNCE = 0.25

# External AI analysis request timeout (seconds).
DEFAULT_AI_TIMEOUT = 30.0

AI_MAX_BODY_CHARS = 10_000

DEFAULT_AI_MODELS = {
    "anthropic": "claude-sonnet-4-5-20250929",
    "openai": "gpt-4o-mini",
}
