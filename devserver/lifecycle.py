import enum
import errno
import logging
import socket

import psutil
from aiohttp import web

from .errors import PortsExhaustedError

log = logging.getLogger(__name__)


class State(enum.Enum):
    UNBOUND = "unbound"
    BINDING = "binding"
    LISTENING = "listening"
    ERROR_RETRYING = "error-retrying"
    CLOSED = "closed"


def local_addresses():
    """IPv4 addresses of the local network interfaces, loopback excluded."""
    hosts = []
    for addrs in psutil.net_if_addrs().values():
        for addr in addrs:
            if addr.family == socket.AF_INET and not addr.address.startswith("127."):
                hosts.append(addr.address)
    return hosts


def is_port_in_use(err):
    return isinstance(err, OSError) and err.errno == errno.EADDRINUSE


class ServerLifecycle:
    def __init__(self, config, logger, path_prefix, handler, channel):
        self.config = config
        self.logger = logger
        self.path_prefix = path_prefix
        self.handler = handler
        self.channel = channel
        self.state = State.UNBOUND
        self.port = None
        self.port_retry_count = 0
        self.runner = None
        self.site = None

    def make_app(self):
        app = web.Application()
        app.router.add_route("*", "/{tail:.*}", self.handler)
        return app

    async def _start_site(self, port):
        site = web.TCPSite(self.runner, self.config.host, port)
        await site.start()
        return site

    def bound_port(self, requested):
        for address in self.runner.addresses:
            if isinstance(address, tuple) and len(address) >= 2:
                return address[1]
        return requested

    async def start(self, port=None):
        if self.state == State.LISTENING:
            return self.port

        port = self.config.port if port is None else port
        self.port_retry_count = 0
        self.runner = web.AppRunner(self.make_app(), access_log=None)
        await self.runner.setup()

        while True:
            self.state = State.BINDING
            try:
                self.site = await self._start_site(port)
                break
            except OSError as err:
                if not is_port_in_use(err):
                    self.server_error(err, port)
                    await self.runner.cleanup()
                    self.state = State.CLOSED
                    return None
                if self.port_retry_count >= self.config.port_retry_limit:
                    await self.runner.cleanup()
                    self.state = State.CLOSED
                    raise PortsExhaustedError(self.config.port_retry_limit, port) from err
                self.state = State.ERROR_RETRYING
                self.port_retry_count += 1
                log.debug(
                    "Server already using port %d, trying the next port %d. Retry number %d of %d",
                    port, port + 1, self.port_retry_count, self.config.port_retry_limit,
                )
                port += 1

        self.port = self.bound_port(port)
        self.state = State.LISTENING
        self.on_listening()
        return self.port

    def on_listening(self):
        self.channel.attach()

        hosts = ""
        if self.config.show_all_hosts:
            urls = [f"http://{host}:{self.port}{self.path_prefix} or" for host in local_addresses()]
            if urls:
                hosts = " ".join(urls) + " "

        self.logger.message(
            f"Server at {hosts}http://localhost:{self.port}{self.path_prefix}",
            "log",
            "blue",
            True,
        )

    def server_error(self, err, port):
        if is_port_in_use(err):
            self.logger.error(f"Server error: Port in use {port}")
        else:
            self.logger.error(f"Server error: {err.strerror or err}")

    async def stop(self):
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None
            self.site = None
        self.state = State.CLOSED
