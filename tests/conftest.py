"""Global pytest configuration and shared fakes."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import AsyncGenerator
from typing import Any

import pytest

from vervain.scanner.findings import Finding
from vervain.scanner.presenter import (
    HostEnvironment,
    HostStatus,
    LinkCandidate,
    Presenter,
    SenderCandidate,
)
from vervain.errors import SettingsUnavailable
from vervain.storage.settings_store import SettingsStore


class MemorySettingsStore(SettingsStore):
    """In-memory store; set ``fail`` to simulate an unreachable backend."""

    def __init__(self, values: dict[str, Any] | None = None):
        self.values: dict[str, Any] = dict(values or {})
        self.fail = False
        self.reads = 0
        self.gate: asyncio.Event | None = None

    async def load_raw(self) -> dict[str, Any]:
        self.reads += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise SettingsUnavailable("store offline")
        return dict(self.values)

    async def save_raw(self, values: dict[str, Any]) -> None:
        if self.fail:
            raise SettingsUnavailable("store offline")
        self.values.update(values)


class FakeHost(HostEnvironment):
    def __init__(self, status: HostStatus = HostStatus.AVAILABLE):
        self.status = status
        self.checks = 0

    def check(self) -> HostStatus:
        self.checks += 1
        return self.status


class FakePresenter(Presenter):
    """Serves fixed candidates and records what the orchestrator does."""

    def __init__(self, session=None):
        self.session = session
        self.senders: list[SenderCandidate] = []
        self.links: list[LinkCandidate] = []
        self.plaintext: list[LinkCandidate] = []
        self.warned: set = set()
        self.rendered: list[Finding] = []
        self.mutation_flags: list[bool] = []
        self.whitelisted: list[str] = []
        self.contacts_added: list = []

    def list_sender_candidates(self) -> list[SenderCandidate]:
        return list(self.senders)

    def list_link_candidates(self) -> list[LinkCandidate]:
        return list(self.links)

    def list_plaintext_url_candidates(self) -> list[LinkCandidate]:
        return list(self.plaintext)

    def is_already_warned(self, element) -> bool:
        return element in self.warned

    def mark_warned(self, element) -> None:
        if self.session is not None:
            self.mutation_flags.append(self.session.suppressing_observer)
        self.warned.add(element)

    def render_finding(self, finding: Finding) -> None:
        if self.session is not None:
            self.mutation_flags.append(self.session.suppressing_observer)
        self.rendered.append(finding)

    def dismiss(self, finding_id: str) -> None:
        if self.session is not None:
            self.session.dismiss(finding_id)

    async def whitelist(self, domain: str) -> None:
        self.whitelisted.append(domain)

    async def add_trusted_contact(self, contact) -> None:
        self.contacts_added.append(contact)


@pytest.fixture
def memory_store() -> MemorySettingsStore:
    return MemorySettingsStore()


@pytest.fixture
def store_factory():
    return MemorySettingsStore


@pytest.fixture
def fake_host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def presenter_factory():
    return FakePresenter


@pytest.fixture(scope="session")
def event_loop() -> AsyncGenerator[asyncio.AbstractEventLoop, None]:
    """Provide a shared event loop for async tests and fixtures."""

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        yield loop
    finally:
        loop.close()


def _get_loop(request: pytest.FixtureRequest) -> asyncio.AbstractEventLoop:
    try:
        loop = request.getfixturevalue("event_loop")
    except pytest.FixtureLookupError:
        loop = asyncio.new_event_loop()
    if loop.is_closed():
        loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    return loop


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem):  # type: ignore[override]
    if inspect.iscoroutinefunction(pyfuncitem.obj):
        testargs = {
            name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames
        }
        loop = testargs.get("event_loop")
        owns_loop = loop is None
        if owns_loop:
            loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            loop.run_until_complete(pyfuncitem.obj(**testargs))
        finally:
            if owns_loop:
                loop.close()
                asyncio.set_event_loop(None)
        return True
    return None


@pytest.hookimpl(tryfirst=True)
def pytest_fixture_setup(fixturedef, request):  # type: ignore[override]
    func = fixturedef.func
    if inspect.iscoroutinefunction(func):
        loop = _get_loop(request)
        kwargs = {arg: request.getfixturevalue(arg) for arg in fixturedef.argnames}
        return loop.run_until_complete(func(**kwargs))

    if inspect.isasyncgenfunction(func):
        loop = _get_loop(request)
        kwargs = {arg: request.getfixturevalue(arg) for arg in fixturedef.argnames}
        agen = func(**kwargs)
        value = loop.run_until_complete(agen.__anext__())

        def finalize() -> None:
            try:
                loop.run_until_complete(agen.__anext__())
            except StopAsyncIteration:
                pass

        request.addfinalizer(finalize)
        return value

    return None


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "asyncio: mark test as requiring asyncio support")
