from pathlib import Path

import pytest

from devserver.config import Collaborators
from devserver.paths import TemplatePath, transform_url
from devserver.server import DevServer


class RecordingLogger:
    def __init__(self):
        self.messages = []
        self.errors = []

    def message(self, text, level="log", color=None, force=False):
        self.messages.append((text, level, color, force))

    def error(self, text):
        self.errors.append(text)


def write(root: Path, rel: str, text: str = "") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


PAGE = "<!doctype html><html><head><title>{title}</title></head><body>{title}</body></html>"


@pytest.fixture
def logger():
    return RecordingLogger()


@pytest.fixture
def site(tmp_path):
    root = tmp_path / "_site"
    root.mkdir()
    write(root, "index.html", PAGE.format(title="Home"))
    write(root, "about.html", PAGE.format(title="About"))
    write(root, "docs/index.html", PAGE.format(title="Docs"))
    write(root, "both.html", PAGE.format(title="Both flat"))
    write(root, "both/index.html", PAGE.format(title="Both dir"))
    write(root, "style.css", "body { color: red; }")
    write(root, "broken.html", "<p>half written")
    write(tmp_path, "secret.txt", "do not serve")
    return root


@pytest.fixture
def make_deps(logger, site):
    def _make(**overrides):
        values = dict(
            logger=logger,
            output_dir=str(site),
            template_path=TemplatePath(),
            transform_url=transform_url,
            path_prefix="/",
        )
        values.update(overrides)
        return Collaborators(**values)

    return _make


@pytest.fixture
def make_server(make_deps):
    def _make(options=None, **deps):
        return DevServer("test", make_deps(**deps), options)

    return _make


@pytest.fixture
async def make_client(aiohttp_client):
    async def _make(server, attach=True):
        if attach:
            server.channel.attach()
        return await aiohttp_client(server.lifecycle.make_app())

    return _make
