"""Command line entry point for Vervain."""

import argparse
import asyncio
import json
import logging
import signal
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from .ai import AIAnalyzer, EmailFields
from .config import Config, load_config, load_settings_file, validate_config
from .detection import VariationKind, check_contact, generate_variations, is_similar
from .errors import AIAnalysisError, SettingsUnavailable
from .mailbox import MailboxHost, MailboxPresenter, parse_message
from .monitoring.health import HealthServer
from .scanner import Finding, MailboxWatcher, ScanMonitor, ScanOrchestrator, ScanSession
from .storage import SettingsCache, SQLiteSettingsStore

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def _print_finding(finding: Finding) -> None:
    where = f" [{finding.container}]" if finding.container else ""
    print(f"ALERT{where} {finding.describe()}")


class VervainMonitor:
    """Long-running mailbox monitor: store, orchestrator, triggers, health."""

    def __init__(self, config: Config, mailbox_dir: Path):
        self.config = config
        self.mailbox_dir = Path(mailbox_dir)
        self._running = False
        self._started_at = datetime.now(timezone.utc)

        self.store = SQLiteSettingsStore(config.settings_db)
        self.session = ScanSession()
        self.presenter = MailboxPresenter(
            self.store, self.session, directory=self.mailbox_dir, on_finding=_print_finding
        )
        self.host = MailboxHost(self.mailbox_dir)
        self.orchestrator = ScanOrchestrator(
            self.store,
            self.presenter,
            self.host,
            cache=SettingsCache(config.settings_cache),
            session=self.session,
            link_alert_limit=config.link_alert_limit,
        )
        self.monitor = ScanMonitor(
            self.orchestrator,
            initial_delay=config.initial_scan_delay,
            debounce=config.scan_debounce,
        )
        self.watcher = MailboxWatcher(
            self.mailbox_dir, self.monitor, interval=config.mailbox_poll_interval
        )
        self.health_server = HealthServer(
            host=config.health_host,
            port=config.health_port,
            status_provider=self._health_snapshot,
            enabled=config.health_enabled,
        )
        self._watch_task: Optional[asyncio.Task] = None

    def _health_snapshot(self) -> dict:
        uptime = (datetime.now(timezone.utc) - self._started_at).total_seconds()
        return {
            "status": "ok" if self._running and not self.monitor.torn_down else "stopped",
            "uptime_seconds": round(uptime, 1),
            "scanning": self.session.scanning,
            "alerts_rendered": len(self.presenter.rendered),
            "scans": dict(self.orchestrator.stats),
        }

    async def start(self) -> None:
        logger.info("Starting Vervain monitor on %s", self.mailbox_dir)
        self._running = True
        try:
            await self.store.connect()
        except Exception as exc:
            logger.warning("Settings database unavailable (%s); relying on cached settings", exc)
        await self.health_server.start()
        self.monitor.start()
        self._watch_task = asyncio.create_task(self.watcher.run())
        try:
            await self._watch_task
        except asyncio.CancelledError:
            logger.info("Mailbox watcher cancelled")
        if self.monitor.torn_down:
            logger.warning("Monitor stopped after host teardown")

    async def stop(self) -> None:
        if not self._running:
            return
        logger.info("Stopping Vervain monitor...")
        self._running = False
        self.watcher.stop()
        await self.monitor.stop()
        if self._watch_task:
            await asyncio.gather(self._watch_task, return_exceptions=True)
        await self.health_server.stop()
        await self.store.close()
        logger.info("Monitor stopped")


async def _open_store(config: Config) -> SQLiteSettingsStore:
    config.ensure_dirs()
    store = SQLiteSettingsStore(config.settings_db)
    await store.connect()
    return store


async def cmd_check(args: argparse.Namespace, config: Config) -> int:
    verdict = is_similar(args.candidate, args.protected)
    if verdict.suspicious:
        print(f"SUSPICIOUS {args.candidate} vs {args.protected} ({verdict.rule.value})")
        return 1
    print(f"ok {args.candidate} vs {args.protected}")
    return 0


async def cmd_variations(args: argparse.Namespace, config: Config) -> int:
    variations = generate_variations(args.domain)
    if args.kind:
        kind = VariationKind(args.kind)
        variations = [v for v in variations if v.kind == kind]
    for variation in variations:
        print(f"{variation.kind.value}\t{variation.domain}")
    return 0


async def cmd_contact(args: argparse.Namespace, config: Config) -> int:
    store = await _open_store(config)
    try:
        settings = await store.get_settings()
    finally:
        await store.close()
    trusted = check_contact(args.name, args.email, settings.trusted_contacts)
    if trusted:
        print(f"SPOOF {args.name} <{args.email}> impersonates {trusted}")
        return 1
    print(f"ok {args.name} <{args.email}>")
    return 0


async def cmd_scan(args: argparse.Namespace, config: Config) -> int:
    files = [Path(f) for f in args.files]
    store = SQLiteSettingsStore(config.settings_db)
    try:
        config.ensure_dirs()
        await store.connect()
    except Exception as exc:
        logger.warning("Settings database unavailable (%s); relying on cached settings", exc)

    session = ScanSession()
    presenter = MailboxPresenter(store, session, files=files, on_finding=_print_finding)
    orchestrator = ScanOrchestrator(
        store,
        presenter,
        MailboxHost(files[0].parent if files else Path(".")),
        cache=SettingsCache(config.settings_cache),
        session=session,
        link_alert_limit=config.link_alert_limit,
    )
    try:
        result = await orchestrator.scan()
    finally:
        await store.close()

    if not result.ran:
        print(f"scan skipped: {result.skipped_reason}")
        return 0
    print(f"{len(result.findings)} finding(s), {len(result.alerts)} alert(s)")
    return 1 if result.alerts else 0


async def cmd_monitor(args: argparse.Namespace, config: Config) -> int:
    config.ensure_dirs()
    monitor = VervainMonitor(config, Path(args.directory))

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, monitor.watcher.stop)

    try:
        await monitor.start()
    finally:
        await monitor.stop()
    return 0


async def cmd_seed(args: argparse.Namespace, config: Config) -> int:
    settings = load_settings_file(Path(args.file))
    store = await _open_store(config)
    try:
        primary = settings.pop("primary_domain", "")
        if primary:
            await store.save_primary_domain(primary)
        if settings:
            await store.set(**settings)
        await store.set(setup_complete=True)
        snapshot = await store.get_settings()
    finally:
        await store.close()
    print(
        f"Seeded {config.settings_db}: {len(snapshot.protected_domains)} protected domain(s), "
        f"{len(snapshot.trusted_contacts)} trusted contact(s), {len(snapshot.variations)} variation(s)"
    )
    return 0


async def cmd_analyze(args: argparse.Namespace, config: Config) -> int:
    message = parse_message(Path(args.file))
    analyzer = AIAnalyzer(
        api_key=config.ai_api_key,
        provider=config.ai_provider,
        model=config.ai_model,
        timeout=config.ai_timeout,
        enabled=config.ai_enabled,
    )
    try:
        verdict = await analyzer.analyze(
            EmailFields(
                sender_name=message.sender_name,
                sender_email=message.sender_email,
                subject=message.subject,
                body=message.text,
                urls=list(dict.fromkeys([*message.links, *message.plaintext_urls])),
            )
        )
    except AIAnalysisError as exc:
        logger.error("AI analysis failed: %s", exc)
        return 2
    finally:
        await analyzer.close()
    print(json.dumps(verdict.to_dict(), indent=2))
    return 0


COMMANDS = {
    "check": cmd_check,
    "variations": cmd_variations,
    "contact": cmd_contact,
    "scan": cmd_scan,
    "monitor": cmd_monitor,
    "seed": cmd_seed,
    "analyze": cmd_analyze,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vervain", description="Detect domain look-alikes and contact spoofing in email."
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("check", help="Compare a candidate domain with a protected domain")
    p.add_argument("candidate")
    p.add_argument("protected")

    p = sub.add_parser("variations", help="List look-alike variations of a domain")
    p.add_argument("domain")
    p.add_argument("--kind", choices=[k.value for k in VariationKind])

    p = sub.add_parser("contact", help="Check a sender against the trusted contacts")
    p.add_argument("name")
    p.add_argument("email")

    p = sub.add_parser("scan", help="Scan .eml files once")
    p.add_argument("files", nargs="+")

    p = sub.add_parser("monitor", help="Watch a mailbox directory and scan on changes")
    p.add_argument("directory")

    p = sub.add_parser("seed", help="Load settings from a YAML file into the store")
    p.add_argument("file")

    p = sub.add_parser("analyze", help="Run AI phishing analysis on one .eml file")
    p.add_argument("file")

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point."""
    args = build_parser().parse_args(argv)
    config = load_config()
    _configure_logging(config.log_level)

    validation_errors = validate_config(config)
    if validation_errors:
        for err in validation_errors:
            logger.error(err)
        return 1

    try:
        return asyncio.run(COMMANDS[args.command](args, config))
    except SettingsUnavailable as exc:
        logger.error("Settings unavailable: %s", exc)
        return 1
    except (OSError, ValueError) as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
