import logging

from .channel import ReloadChannel
from .config import Collaborators, ServerConfig
from .lifecycle import ServerLifecycle
from .pipeline import FallbackHandler, RequestPipeline
from .resolver import PathResolver

log = logging.getLogger(__name__)


class DevServer:
    """One named site: HTTP server, resolver and reload channel."""

    def __init__(self, name, collaborators, options=None):
        if isinstance(collaborators, dict):
            collaborators = Collaborators(**collaborators)
        self.deps = collaborators.check()
        self.name = name
        self.config = ServerConfig.from_options(name, options)

        self.logger = self.deps.logger
        self.output_dir = self.deps.output_dir
        self.path_prefix = self.deps.path_prefix

        self.resolver = PathResolver(
            self.deps.template_path.absolute_path(self.output_dir), self.path_prefix
        )
        self.pipeline = RequestPipeline(
            self.config,
            self.resolver,
            FallbackHandler(self.logger, self.output_dir, self.deps.template_path),
        )
        self.channel = ReloadChannel(self.path_prefix, self.deps.transform_url)
        self.lifecycle = ServerLifecycle(
            self.config, self.logger, self.path_prefix, self.handle_request, self.channel
        )

    async def handle_request(self, request):
        if self.channel.accepts(request):
            return await self.channel.handle(request)
        return await self.pipeline.handle(request)

    @property
    def port(self):
        return self.lifecycle.port

    @property
    def state(self):
        return self.lifecycle.state

    def map_url_to_file_path(self, url):
        return self.resolver.resolve(url)

    def augment(self, content):
        if not self.config.enabled:
            return content
        return self.pipeline.augment(content)

    async def serve(self, port=None):
        return await self.lifecycle.start(port)

    async def reload(self, subtype=None, files=None, build=None):
        return await self.channel.notify_reload(subtype, files, build)

    async def send_error(self, error):
        return await self.channel.notify_error(error)

    async def exit(self):
        return await self.channel.notify_exit()

    async def close(self):
        # clients hear about the shutdown before the socket goes away
        await self.exit()
        await self.channel.close()
        await self.lifecycle.stop()


class ServerRegistry:
    """Hands out a single DevServer per site name."""

    def __init__(self, factory=DevServer):
        self.factory = factory
        self._servers = {}

    def get_or_create(self, name, collaborators=None, options=None):
        if name not in self._servers:
            if collaborators is None:
                raise KeyError(f"No server named {name!r} and nothing to create it from")
            log.debug("Creating dev server %r", name)
            self._servers[name] = self.factory(name, collaborators, options)
        return self._servers[name]

    def get(self, name):
        return self._servers.get(name)

    def names(self):
        return list(self._servers)

    def __contains__(self, name):
        return name in self._servers

    def __len__(self):
        return len(self._servers)
