import errno

import pytest

import devserver.lifecycle as lifecycle_module
from devserver.channel import ReloadChannel
from devserver.config import ServerConfig
from devserver.errors import PortsExhaustedError
from devserver.lifecycle import ServerLifecycle, State
from devserver.paths import transform_url


class FakeSite:
    pass


class ScriptedLifecycle(ServerLifecycle):
    """Bind attempts fail with the queued errors, then succeed."""

    def __init__(self, *args, failures=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.failures = list(failures)
        self.attempts = []

    async def _start_site(self, port):
        self.attempts.append(port)
        if self.failures:
            raise self.failures.pop(0)
        return FakeSite()


def in_use():
    return OSError(errno.EADDRINUSE, "Address already in use")


async def not_used(request):
    raise AssertionError("no requests expected")


@pytest.fixture
def make_lifecycle(logger):
    def _make(failures=(), **options):
        config = ServerConfig.from_options("test", {"port": 9000, **options})
        channel = ReloadChannel("/", transform_url)
        return ScriptedLifecycle(config, logger, "/", not_used, channel, failures=failures)

    return _make


async def test_listens_on_requested_port(make_lifecycle, logger):
    lifecycle = make_lifecycle()
    assert lifecycle.state == State.UNBOUND

    assert await lifecycle.start() == 9000
    assert lifecycle.state == State.LISTENING
    assert lifecycle.channel.attached
    assert logger.messages == [("Server at http://localhost:9000/", "log", "blue", True)]
    await lifecycle.stop()
    assert lifecycle.state == State.CLOSED


async def test_retries_next_port_when_in_use(make_lifecycle):
    lifecycle = make_lifecycle(failures=[in_use() for _ in range(3)])

    assert await lifecycle.start() == 9003
    assert lifecycle.attempts == [9000, 9001, 9002, 9003]
    assert lifecycle.port_retry_count == 3
    await lifecycle.stop()


async def test_retry_limit_exhausted(make_lifecycle):
    lifecycle = make_lifecycle(failures=[in_use() for _ in range(10)], port_retry_limit=3)

    with pytest.raises(PortsExhaustedError) as exc_info:
        await lifecycle.start()

    assert lifecycle.attempts == [9000, 9001, 9002, 9003]
    assert "--port" in str(exc_info.value)
    assert lifecycle.state == State.CLOSED
    assert not lifecycle.channel.attached


async def test_zero_retries(make_lifecycle):
    lifecycle = make_lifecycle(failures=[in_use()], port_retry_limit=0)

    with pytest.raises(PortsExhaustedError):
        await lifecycle.start()
    assert lifecycle.attempts == [9000]


async def test_other_errors_are_logged_not_retried(make_lifecycle, logger):
    lifecycle = make_lifecycle(failures=[OSError(errno.EACCES, "Permission denied")])

    assert await lifecycle.start() is None
    assert lifecycle.attempts == [9000]
    assert lifecycle.state == State.CLOSED
    assert logger.errors == ["Server error: Permission denied"]
    assert logger.messages == []


async def test_start_port_argument_wins(make_lifecycle):
    lifecycle = make_lifecycle()
    assert await lifecycle.start(9100) == 9100
    await lifecycle.stop()


async def test_show_all_hosts(make_lifecycle, logger, monkeypatch):
    monkeypatch.setattr(lifecycle_module, "local_addresses", lambda: ["192.168.1.20", "10.0.0.5"])
    lifecycle = make_lifecycle(show_all_hosts=True)

    await lifecycle.start()
    assert logger.messages[0][0] == (
        "Server at http://192.168.1.20:9000/ or http://10.0.0.5:9000/ or http://localhost:9000/"
    )
    await lifecycle.stop()


async def test_real_bind_reports_actual_port(logger):
    config = ServerConfig.from_options("real", {"port": 0, "host": "127.0.0.1"})
    lifecycle = ServerLifecycle(config, logger, "/", not_used, ReloadChannel("/", transform_url))

    port = await lifecycle.start()
    assert port and port != 0
    assert lifecycle.state == State.LISTENING
    assert logger.messages[0][0] == f"Server at http://localhost:{port}/"
    await lifecycle.stop()


def test_local_addresses_skip_loopback():
    assert all(not host.startswith("127.") for host in lifecycle_module.local_addresses())
