import asyncio

import pytest

from vervain.detection.similarity import MatchRule
from vervain.scanner import orchestrator as orchestrator_module
from vervain.scanner.findings import FindingKind, FindingSource
from vervain.scanner.orchestrator import ScanOrchestrator
from vervain.scanner.presenter import HostStatus, LinkCandidate, SenderCandidate
from vervain.scanner.session import ScanSession
from vervain.storage.cache import SettingsCache

ACME = {
    "primaryDomain": "acme.com",
    "additionalDomains": [],
    "trustedContacts": [{"name": "Jane Roe", "email": "jane@acme.com"}],
    "setupComplete": True,
}


def _link(host, element, container="m1", url=None):
    return LinkCandidate(url=url or f"https://{host}/login", host=host, element=element, container=container)


def _build(store_factory, presenter_factory, fake_host, values=None, **kwargs):
    store = store_factory(dict(ACME if values is None else values))
    session = ScanSession()
    presenter = presenter_factory(session)
    orch = ScanOrchestrator(store, presenter, fake_host, session=session, **kwargs)
    return orch, store, presenter


@pytest.mark.asyncio
async def test_acme_end_to_end(store_factory, presenter_factory, fake_host):
    orch, store, presenter = _build(store_factory, presenter_factory, fake_host)
    presenter.senders = [
        SenderCandidate("Jane Roe", "jane@acme-support.net", element="s1", container="m1"),
        SenderCandidate("Bob", "bob@acme.com", element="s2", container="m2"),
    ]
    presenter.links = [_link("acme-login.com", "l1", container="m3")]

    result = await orch.scan()

    assert result.ran
    assert [f.kind for f in result.alerts] == [FindingKind.CONTACT, FindingKind.DOMAIN]
    contact, link = result.alerts
    assert contact.trusted_email == "jane@acme.com"
    assert contact.finding_id == "contact-warning:jane@acme-support.net"
    assert link.source == FindingSource.LINK
    assert link.suspicious_domain == "acme-login.com"
    assert link.protected_domain == "acme.com"
    assert link.rule == MatchRule.HYPHENATED_PART
    assert presenter.warned == {"s1", "l1"}
    assert store.values["alertsCount"] == 2


@pytest.mark.asyncio
async def test_second_trigger_during_scan_is_dropped(store_factory, presenter_factory, fake_host):
    orch, store, presenter = _build(store_factory, presenter_factory, fake_host)
    store.gate = asyncio.Event()

    first = asyncio.ensure_future(orch.scan())
    await asyncio.sleep(0)
    assert orch.session.scanning is True

    second = await orch.scan()
    assert second.skipped_reason == "busy"
    assert orch.stats["dropped"] == 1

    store.gate.set()
    result = await first
    assert result.ran
    assert store.reads == 1
    assert orch.session.scanning is False


@pytest.mark.asyncio
async def test_scanning_flag_cleared_after_error(store_factory, presenter_factory, fake_host):
    orch, _, presenter = _build(store_factory, presenter_factory, fake_host)

    def explode():
        raise RuntimeError("enumeration failed")

    presenter.list_link_candidates = explode
    result = await orch.scan()
    assert result.skipped_reason == "error"
    assert orch.session.scanning is False
    assert orch.session.suppressing_observer is False


@pytest.mark.asyncio
async def test_dismissal_holds_until_reload(store_factory, presenter_factory, fake_host):
    orch, _, presenter = _build(store_factory, presenter_factory, fake_host)
    presenter.links = [_link("acme-login.com", "l1")]

    first = await orch.scan()
    assert len(first.alerts) == 1
    orch.dismiss(first.alerts[0].finding_id)

    presenter.warned.clear()
    second = await orch.scan()
    assert len(second.findings) == 1
    assert second.alerts == []
    assert len(presenter.rendered) == 1

    orch.reload()
    presenter.warned.clear()
    third = await orch.scan()
    assert len(third.alerts) == 1
    assert len(presenter.rendered) == 2


@pytest.mark.asyncio
async def test_already_warned_elements_are_not_reevaluated(store_factory, presenter_factory, fake_host):
    orch, _, presenter = _build(store_factory, presenter_factory, fake_host)
    presenter.links = [_link("acme-login.com", "l1")]
    presenter.warned.add("l1")

    result = await orch.scan()
    assert result.ran
    assert result.findings == []


@pytest.mark.asyncio
async def test_cache_fallback_when_store_fails(store_factory, presenter_factory, fake_host, tmp_path):
    cache = SettingsCache(tmp_path / "cache.json")
    orch, store, presenter = _build(store_factory, presenter_factory, fake_host, cache=cache)
    presenter.links = [_link("acme-login.com", "l1")]

    assert (await orch.scan()).ran
    assert (tmp_path / "cache.json").exists()

    store.fail = True
    presenter.warned.clear()
    result = await orch.scan()
    assert result.ran
    assert len(result.findings) == 1
    assert orch.stats["cache_fallbacks"] == 1


@pytest.mark.asyncio
async def test_host_unavailable_without_cache_is_a_no_op(store_factory, presenter_factory, fake_host):
    fake_host.status = HostStatus.UNAVAILABLE
    orch, store, presenter = _build(store_factory, presenter_factory, fake_host)
    presenter.links = [_link("acme-login.com", "l1")]

    result = await orch.scan()
    assert result.skipped_reason == "no_settings"
    assert store.reads == 0
    assert presenter.rendered == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "values,reason",
    [
        ({**ACME, "domainDetectionEnabled": False, "contactDetectionEnabled": False}, "disabled"),
        ({"primaryDomain": "acme.com", "detectionEnabled": False, "setupComplete": True}, "disabled"),
        ({"setupComplete": True}, "no_targets"),
        ({"primaryDomain": "acme.com"}, "setup_incomplete"),
    ],
)
async def test_gating(store_factory, presenter_factory, fake_host, values, reason):
    orch, _, presenter = _build(store_factory, presenter_factory, fake_host, values=values)
    presenter.links = [_link("acme-login.com", "l1")]
    result = await orch.scan()
    assert result.skipped_reason == reason
    assert presenter.rendered == []


@pytest.mark.asyncio
async def test_contacts_only_setup_still_scans(store_factory, presenter_factory, fake_host):
    values = {"trustedContacts": [{"name": "Jane Roe", "email": "jane@acme.com"}]}
    orch, _, presenter = _build(store_factory, presenter_factory, fake_host, values=values)
    presenter.senders = [SenderCandidate("Jane Roe", "jane@elsewhere.net", element="s1")]
    result = await orch.scan()
    assert [f.kind for f in result.alerts] == [FindingKind.CONTACT]


@pytest.mark.asyncio
async def test_link_alerts_are_bounded_per_container(store_factory, presenter_factory, fake_host):
    orch, _, presenter = _build(store_factory, presenter_factory, fake_host)
    hosts = ["acme-login.com", "acme-secure.com", "acme-pay.com", "acme-help.com"]
    presenter.links = [_link(h, f"a{i}", container="m1") for i, h in enumerate(hosts)]
    presenter.plaintext = [_link("acme-mail.com", "p0", container="m1")]
    presenter.links.append(_link("acme-billing.com", "b0", container="m2"))

    result = await orch.scan()

    assert len(result.findings) == 6
    assert len([f for f in result.alerts if f.container == "m1"]) == 3
    assert len([f for f in result.alerts if f.container == "m2"]) == 1
    assert presenter.warned == {"a0", "a1", "a2", "a3", "p0", "b0"}


@pytest.mark.asyncio
async def test_link_alert_limit_is_configurable(store_factory, presenter_factory, fake_host):
    orch, _, presenter = _build(store_factory, presenter_factory, fake_host, link_alert_limit=1)
    presenter.links = [_link("acme-login.com", "a0"), _link("acme-pay.com", "a1")]
    result = await orch.scan()
    assert len(result.findings) == 2
    assert len(result.alerts) == 1


@pytest.mark.asyncio
async def test_one_alert_per_finding_id(store_factory, presenter_factory, fake_host):
    orch, _, presenter = _build(store_factory, presenter_factory, fake_host)
    presenter.senders = [
        SenderCandidate("", "a@acme-login.com", element="s1", container="m1"),
        SenderCandidate("", "b@acme-login.com", element="s2", container="m2"),
    ]
    result = await orch.scan()
    assert len(result.findings) == 2
    assert len(result.alerts) == 1
    assert presenter.warned == {"s1", "s2"}


@pytest.mark.asyncio
async def test_sender_whitelist_blocklist_and_subdomains(store_factory, presenter_factory, fake_host):
    values = {
        **ACME,
        "whitelistedDomains": ["acme-partner.com"],
        "blockedDomains": ["known-bad.example"],
    }
    orch, _, presenter = _build(store_factory, presenter_factory, fake_host, values=values)
    presenter.senders = [
        SenderCandidate("Ann", "ann@login.acme-partner.com", element="s1"),
        SenderCandidate("Eve", "eve@known-bad.example", element="s2"),
        SenderCandidate("Max", "max@mail.acme.com", element="s3"),
    ]
    result = await orch.scan()
    assert [(f.kind, f.subject) for f in result.findings] == [
        (FindingKind.BLOCKED, "eve@known-bad.example")
    ]
    assert result.findings[0].legitimate_label == "Blocked Domain"


@pytest.mark.asyncio
async def test_link_whitelist_uses_registrable_domain(store_factory, presenter_factory, fake_host):
    values = {**ACME, "whitelistedDomains": ["acme-partner.com"]}
    orch, _, presenter = _build(store_factory, presenter_factory, fake_host, values=values)
    presenter.links = [
        _link("login.acme-partner.com", "l1"),
        _link("www.acme.com", "l2"),
        _link("", "l3", url="mailto:jane@acme-login.com"),
        _link("", "l4", url="https://"),
    ]
    result = await orch.scan()
    assert result.ran
    assert result.findings == []


@pytest.mark.asyncio
async def test_known_variation_catalog_path(store_factory, presenter_factory, fake_host):
    orch, _, presenter = _build(store_factory, presenter_factory, fake_host)
    # one keyboard typo away; the classifier alone does not flag it
    presenter.senders = [SenderCandidate("Support", "help@scme.com", element="s1")]
    result = await orch.scan()
    assert len(result.alerts) == 1
    assert result.alerts[0].rule == MatchRule.KNOWN_VARIATION
    assert result.alerts[0].protected_domain == "acme.com"


@pytest.mark.asyncio
async def test_catalog_rebuilt_only_when_primary_changes(store_factory, presenter_factory, fake_host):
    orch, store, presenter = _build(store_factory, presenter_factory, fake_host)
    presenter.senders = [SenderCandidate("Ann", "ann@unrelated.org", element="s1")]
    await orch.scan()
    catalog = orch._catalog
    assert catalog is not None
    await orch.scan()
    assert orch._catalog is catalog

    store.values["primaryDomain"] = "globex.com"
    await orch.scan()
    assert orch._catalog is not catalog
    assert orch._catalog.primary_domain == "globex.com"


@pytest.mark.asyncio
async def test_contact_finding_skips_domain_checks_and_auto_adds(store_factory, presenter_factory, fake_host):
    values = {**ACME, "autoAddDomains": True}
    orch, store, presenter = _build(store_factory, presenter_factory, fake_host, values=values)
    presenter.senders = [SenderCandidate("Jane Roe", "jane@acme-login.com", element="s1")]

    result = await orch.scan()
    assert [f.kind for f in result.findings] == [FindingKind.CONTACT]
    assert "acme-login.com" in store.values["whitelistedDomains"]


@pytest.mark.asyncio
async def test_matcher_errors_fail_open(store_factory, presenter_factory, fake_host, monkeypatch):
    orch, _, presenter = _build(store_factory, presenter_factory, fake_host)

    def broken(candidate, protected):
        raise ValueError("bad input")

    monkeypatch.setattr(orchestrator_module, "is_similar", broken)
    presenter.links = [_link("acme-login.com", "l1")]
    presenter.senders = [SenderCandidate("Jane Roe", "jane@acme-support.net", element="s1")]

    result = await orch.scan()
    assert result.ran
    assert [f.kind for f in result.findings] == [FindingKind.CONTACT]


@pytest.mark.asyncio
async def test_presenter_changes_are_bracketed_as_self_mutation(store_factory, presenter_factory, fake_host):
    orch, _, presenter = _build(store_factory, presenter_factory, fake_host)
    presenter.links = [_link("acme-login.com", "l1")]
    await orch.scan()
    assert presenter.mutation_flags == [True, True]
    assert orch.session.suppressing_observer is False


@pytest.mark.asyncio
async def test_sender_domain_with_trailing_dot_is_own_domain(store_factory, presenter_factory, fake_host):
    orch, _, presenter = _build(store_factory, presenter_factory, fake_host)
    presenter.senders = [SenderCandidate("Bob", "bob@acme.com.", element="s1", container="m1")]

    result = await orch.scan()

    assert result.ran
    assert result.findings == []
