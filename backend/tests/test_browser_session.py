import asyncio

import pytest

from dropsniper.core.errors import NetworkTimeout, TransientUnavailable
from dropsniper.platforms.browser import BrowserSession


class FakeLaunched:
    def __init__(self):
        self.browser = object()
        self.closed = False

    async def close(self):
        self.closed = True


@pytest.fixture
def launches():
    return []


@pytest.fixture
def session(launches):
    async def launcher(headless):
        launched = FakeLaunched()
        launches.append(launched)
        return launched

    s = BrowserSession(launcher=launcher, timeout_seconds=5)
    yield s
    s.close()


async def _identity(browser):
    return browser


async def _boom(browser):
    raise RuntimeError("page crashed")


async def _slow(browser):
    await asyncio.sleep(2)


def test_browser_is_launched_once_and_reused(session, launches):
    first = session.call(_identity)
    second = session.call(_identity)

    assert first is second is launches[0].browser
    assert session.launch_count == 1
    assert session.is_running is True


def test_error_discards_browser_and_releases_checkout(session, launches):
    session.call(_identity)

    with pytest.raises(RuntimeError):
        session.call(_boom)

    assert launches[0].closed is True
    assert session.is_running is False
    # next checkout gets a fresh browser
    assert session.call(_identity) is launches[1].browser
    assert session.launch_count == 2


def test_timeout_raises_network_timeout(session):
    with pytest.raises(NetworkTimeout):
        session.call(_slow, timeout=0.05)

    assert session.call(_identity) is not None


def test_close_is_idempotent(session, launches):
    session.call(_identity)

    session.close()
    session.close()

    assert launches[0].closed is True
    assert session.is_running is False


def test_platform_answers_keep_the_browser(session, launches):
    async def sold_out(browser):
        raise TransientUnavailable("Tock API error: 409")

    with pytest.raises(TransientUnavailable):
        session.call(sold_out)

    assert session.is_running is True
    assert launches[0].closed is False
    assert session.launch_count == 1


def test_failed_reset_keeps_the_original_error(launches):
    class HangingClose(FakeLaunched):
        async def close(self):
            await asyncio.sleep(5)

    async def launcher(headless):
        launched = HangingClose()
        launches.append(launched)
        return launched

    s = BrowserSession(launcher=launcher, timeout_seconds=0.05)
    try:
        with pytest.raises(RuntimeError, match="page crashed"):
            s.call(_boom, timeout=5)
        assert s.is_running is False
    finally:
        s.close()
