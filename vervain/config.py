"""Configuration management for Vervain."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .constants import (
    DEFAULT_AI_TIMEOUT,
    DEFAULT_INITIAL_SCAN_DELAY,
    DEFAULT_LINK_ALERT_LIMIT,
    DEFAULT_SCAN_DEBOUNCE,
)
from .detection.contacts import TrustedContact
from .utils.domains import normalize_domain_entry

logger = logging.getLogger(__name__)

AI_PROVIDERS = {"anthropic", "openai"}
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class Config:
    """Application configuration loaded from environment."""

    # Paths
    data_dir: Path = field(default_factory=lambda: Path("./data"))
    config_dir: Path = field(default_factory=lambda: Path("./config"))
    settings_db: Path | None = None
    settings_cache: Path | None = None

    # Scan triggers
    initial_scan_delay: float = DEFAULT_INITIAL_SCAN_DELAY
    scan_debounce: float = DEFAULT_SCAN_DEBOUNCE
    link_alert_limit: int = DEFAULT_LINK_ALERT_LIMIT
    mailbox_poll_interval: float = 2.0

    # Health endpoint (monitor only)
    health_host: str = "127.0.0.1"
    health_port: int = 8081
    health_enabled: bool = False

    # Optional AI analysis
    ai_enabled: bool = False
    ai_provider: str = "anthropic"
    ai_api_key: str = ""
    ai_model: str = ""
    ai_timeout: float = DEFAULT_AI_TIMEOUT

    log_level: str = "INFO"

    # Environment values that could not be parsed; reported by validate_config.
    parse_errors: list[str] = field(default_factory=list)

    def __post_init__(self):
        """Resolve paths relative to the data directory."""
        self.data_dir = Path(self.data_dir)
        self.config_dir = Path(self.config_dir)
        self.settings_db = Path(self.settings_db) if self.settings_db else self.data_dir / "settings.db"
        self.settings_cache = (
            Path(self.settings_cache) if self.settings_cache else self.data_dir / "settings-cache.json"
        )

    def ensure_dirs(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _load_heuristics(config_dir: Path) -> dict:
    """Load overrides from config/heuristics.yaml (optional)."""
    path = Path(config_dir or ".") / "heuristics.yaml"
    if not path.exists():
        return {}

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except Exception as exc:
        logger.warning("Failed to parse heuristics.yaml: %s", exc)
        return {}
    if not isinstance(data, dict):
        return {}

    scan_cfg = data.get("scan") or {}
    if not isinstance(scan_cfg, dict):
        scan_cfg = {}

    overrides: dict[str, Any] = {}
    for key, cast in (
        ("link_alert_limit", int),
        ("initial_scan_delay", float),
        ("scan_debounce", float),
    ):
        if key not in scan_cfg:
            continue
        try:
            overrides[key] = cast(scan_cfg[key])
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid %s in heuristics.yaml: %r", key, scan_cfg[key])
    return overrides


def load_config() -> Config:
    """Load configuration from environment variables."""
    load_dotenv()

    config_dir = Path(os.getenv("CONFIG_DIR", "./config"))
    heuristics = _load_heuristics(config_dir)
    parse_errors: list[str] = []

    def _number(name: str, default, cast=float, key: str = ""):
        raw = os.getenv(name)
        if raw is None or not raw.strip():
            return heuristics.get(key, default) if key else default
        try:
            return cast(raw.strip())
        except ValueError:
            parse_errors.append(f"{name} must be a number, got {raw!r}")
            return default

    return Config(
        data_dir=Path(os.getenv("DATA_DIR", "./data")),
        config_dir=config_dir,
        settings_db=Path(os.getenv("SETTINGS_DB")) if os.getenv("SETTINGS_DB") else None,
        settings_cache=Path(os.getenv("SETTINGS_CACHE")) if os.getenv("SETTINGS_CACHE") else None,
        initial_scan_delay=_number("INITIAL_SCAN_DELAY", DEFAULT_INITIAL_SCAN_DELAY, key="initial_scan_delay"),
        scan_debounce=_number("SCAN_DEBOUNCE", DEFAULT_SCAN_DEBOUNCE, key="scan_debounce"),
        link_alert_limit=_number("LINK_ALERT_LIMIT", DEFAULT_LINK_ALERT_LIMIT, int, key="link_alert_limit"),
        mailbox_poll_interval=_number("MAILBOX_POLL_INTERVAL", 2.0),
        health_host=os.getenv("HEALTH_HOST", "127.0.0.1"),
        health_port=_number("HEALTH_PORT", 8081, int),
        health_enabled=_env_bool("HEALTH_ENABLED", False),
        ai_enabled=_env_bool("AI_ENABLED", False),
        ai_provider=os.getenv("AI_PROVIDER", "anthropic").strip().lower() or "anthropic",
        ai_api_key=os.getenv("AI_API_KEY", ""),
        ai_model=os.getenv("AI_MODEL", ""),
        ai_timeout=_number("AI_TIMEOUT", DEFAULT_AI_TIMEOUT),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        parse_errors=parse_errors,
    )


def validate_config(config: Config) -> list[str]:
    """Validate configuration and return list of error messages."""
    errors: list[str] = list(config.parse_errors)
    if config.link_alert_limit < 0:
        errors.append("LINK_ALERT_LIMIT must not be negative")
    if config.initial_scan_delay < 0:
        errors.append("INITIAL_SCAN_DELAY must not be negative")
    if config.scan_debounce < 0:
        errors.append("SCAN_DEBOUNCE must not be negative")
    if not 0 < config.health_port < 65536:
        errors.append("HEALTH_PORT must be between 1 and 65535")
    if config.log_level not in LOG_LEVELS:
        errors.append(f"LOG_LEVEL must be one of {', '.join(sorted(LOG_LEVELS))}")

    if config.ai_enabled:
        if config.ai_provider not in AI_PROVIDERS:
            errors.append("AI_PROVIDER must be 'anthropic' or 'openai'")
        if not (config.ai_api_key or "").strip():
            errors.append("AI analysis enabled but AI_API_KEY missing")
        if config.ai_timeout <= 0:
            errors.append("AI_TIMEOUT must be positive")

    return errors


def load_settings_file(path: Path) -> dict[str, Any]:
    """
    Read a YAML settings file for ``vervain seed``.

    Recognised keys: primary_domain, additional_domains, whitelisted_domains,
    blocked_domains, trusted_contacts (list of {name, email}),
    domain_detection_enabled, contact_detection_enabled, auto_add_domains.
    Unknown keys are ignored with a warning.
    """
    data = yaml.safe_load(Path(path).read_text()) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")

    settings: dict[str, Any] = {}
    if data.get("primary_domain"):
        settings["primary_domain"] = normalize_domain_entry(str(data["primary_domain"]))
    for key in ("additional_domains", "whitelisted_domains", "blocked_domains"):
        if key in data:
            values = data.get(key) or []
            if not isinstance(values, list):
                raise ValueError(f"{path}: {key} must be a list")
            settings[key] = [d for d in (normalize_domain_entry(str(v)) for v in values) if d]
    if "trusted_contacts" in data:
        contacts = []
        for entry in data.get("trusted_contacts") or []:
            if not isinstance(entry, dict) or not entry.get("email"):
                logger.warning("Skipping trusted contact without an email: %r", entry)
                continue
            contacts.append(TrustedContact.from_dict(entry))
        settings["trusted_contacts"] = contacts
    for key in ("domain_detection_enabled", "contact_detection_enabled", "auto_add_domains"):
        if key in data:
            settings[key] = bool(data[key])

    known = {
        "primary_domain",
        "additional_domains",
        "whitelisted_domains",
        "blocked_domains",
        "trusted_contacts",
        "domain_detection_enabled",
        "contact_detection_enabled",
        "auto_add_domains",
    }
    for key in sorted(set(data) - known):
        logger.warning("Ignoring unknown settings key %r in %s", key, path)
    return settings
