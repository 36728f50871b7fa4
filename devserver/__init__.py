from .augment import augment_content
from .channel import ReloadChannel
from .config import Collaborators, ServerConfig
from .errors import (
    ConfigurationError,
    DevServerError,
    InvalidPathError,
    MissingDependencyError,
    PortsExhaustedError,
)
from .lifecycle import ServerLifecycle, State
from .logger import ConsoleLogger
from .paths import TemplatePath, transform_url
from .pipeline import RequestPipeline, ResponseSink
from .resolver import Found, NotFound, PathResolver, Redirect
from .server import DevServer, ServerRegistry

__version__ = "0.1.0"

__all__ = [
    "Collaborators",
    "ConfigurationError",
    "ConsoleLogger",
    "DevServer",
    "DevServerError",
    "Found",
    "InvalidPathError",
    "MissingDependencyError",
    "NotFound",
    "PathResolver",
    "PortsExhaustedError",
    "Redirect",
    "ReloadChannel",
    "RequestPipeline",
    "ResponseSink",
    "ServerConfig",
    "ServerLifecycle",
    "ServerRegistry",
    "State",
    "TemplatePath",
    "augment_content",
    "transform_url",
]
