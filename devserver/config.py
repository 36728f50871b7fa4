from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Optional, Tuple

from .errors import ConfigurationError, MissingDependencyError

DEFAULT_PORT = 8080
DEFAULT_FOLDER = ".11ty"
DEFAULT_PORT_RETRY_LIMIT = 10


@dataclass(frozen=True)
class ServerConfig:
    name: str
    port: int = DEFAULT_PORT
    enabled: bool = True              # live reload at all
    show_all_hosts: bool = False      # IP address based hosts (other than localhost)
    injected_folder_name: str = DEFAULT_FOLDER
    port_retry_limit: int = DEFAULT_PORT_RETRY_LIMIT
    middleware: Tuple[Any, ...] = ()
    host: Optional[str] = None        # None binds every interface

    def __post_init__(self):
        if not self.name:
            raise ConfigurationError("Server name is required")
        if not isinstance(self.port, int) or not 0 <= self.port <= 65535:
            raise ConfigurationError(f"Invalid port: {self.port!r}")
        if not isinstance(self.port_retry_limit, int) or self.port_retry_limit < 0:
            raise ConfigurationError(f"Invalid port retry limit: {self.port_retry_limit!r}")
        folder = self.injected_folder_name
        if not folder or "/" in folder or folder in (".", ".."):
            raise ConfigurationError(f"Invalid injected folder name: {folder!r}")
        # lists are accepted but stored as a tuple
        object.__setattr__(self, "middleware", tuple(self.middleware or ()))

    @classmethod
    def option_names(cls):
        return {f.name for f in fields(cls)} - {"name"}

    @classmethod
    def from_options(cls, name, options=None):
        """Merge caller overrides onto the defaults."""
        options = dict(options or {})
        unknown = set(options) - cls.option_names()
        if unknown:
            raise ConfigurationError(f"Unknown server option(s): {', '.join(sorted(unknown))}")
        return cls(name=name, **options)

    def with_port(self, port):
        return replace(self, port=port)


@dataclass
class Collaborators:
    """Upstream pieces the server needs from the build tool."""

    logger: Any = None
    output_dir: Optional[str] = None
    template_path: Any = None
    transform_url: Optional[Callable[[str, str], str]] = None
    path_prefix: Optional[str] = None

    REQUIRED = ("logger", "output_dir", "template_path", "transform_url", "path_prefix")

    def check(self):
        for key in self.REQUIRED:
            if not getattr(self, key):
                raise MissingDependencyError(key)
        if not self.path_prefix.startswith("/"):
            raise ConfigurationError(f"Path prefix must start with '/': {self.path_prefix!r}")
        return self


def normalize_path_prefix(prefix):
    """'/docs' and 'docs/' both become '/docs/'; empty becomes '/'."""
    prefix = (prefix or "").strip("/")
    return f"/{prefix}/" if prefix else "/"
