"""Map request URLs onto files in the output directory.

Uses the trailing slash conventions from https://www.zachleat.com/web/trailing-slash/

resource.html exists:
    /resource matches
    /resource/ redirects to /resource
resource/index.html exists:
    /resource redirects to /resource/
    /resource/ matches
both resource.html and resource/index.html exist:
    /resource matches resource.html
    /resource/ matches resource/index.html
"""
import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, unquote, urlsplit

from .errors import InvalidPathError


@dataclass(frozen=True)
class Found:
    file_path: str
    status_code: int = 200


@dataclass(frozen=True)
class Redirect:
    target_url: str
    status_code: int = 301


@dataclass(frozen=True)
class NotFound:
    status_code: int = 404


class PathResolver:
    def __init__(self, output_dir, path_prefix="/"):
        self.output_dir = os.path.abspath(output_dir)
        self.path_prefix = path_prefix or "/"

    def contains(self, path):
        return path == self.output_dir or path.startswith(self.output_dir.rstrip(os.sep) + os.sep)

    def output_path(self, url_path, suffix=""):
        """Join a url path onto the output dir, refusing anything outside of it.

        Purely lexical: nothing touches the filesystem before the check.
        """
        parts = [p for p in url_path.split("/") if p]
        computed = os.path.normpath(os.path.join(self.output_dir, *parts))
        if suffix == ".html":
            # filepath.html, never filepath/.html
            computed += suffix
        elif suffix:
            computed = os.path.join(computed, suffix)
        if not self.contains(computed):
            raise InvalidPathError(url_path)
        return computed

    def strip_prefix(self, path) -> Optional[str]:
        if self.path_prefix == "/":
            return path
        if not path.startswith(self.path_prefix):
            return None
        return "/" + path[len(self.path_prefix):]

    def _redirect(self, path, query):
        target = quote(path, safe="/:@!$&'()*+,;=~")
        if self.path_prefix != "/":
            target = self.path_prefix.rstrip("/") + target
        if query:
            target += "?" + query
        return Redirect(target)

    def resolve(self, url):
        parsed = urlsplit(url)
        path = unquote(parsed.path) or "/"

        path = self.strip_prefix(path)
        if path is None:
            return NotFound()

        raw_path = self.output_path(path)
        # style.css/ is not style.css
        if not path.endswith("/") and os.path.isfile(raw_path):
            return Found(raw_path)

        index_path = self.output_path(path, "index.html")
        stripped = path.rstrip("/")
        html_path = None
        if stripped and raw_path != self.output_dir:
            # the root has no sibling .html file
            html_path = self.output_path(stripped, ".html")

        html_exists = html_path is not None and os.path.isfile(html_path)

        # /resource/ => resource/index.html
        if os.path.isfile(index_path):
            if path.endswith("/"):
                return Found(index_path)
            # resource.html wins for the slashless spelling
            if html_exists:
                return Found(html_path)
            return self._redirect(path + "/", parsed.query)

        # /resource => resource.html
        if html_exists:
            if not path.endswith("/"):
                return Found(html_path)
            return self._redirect(stripped, parsed.query)

        return NotFound()
