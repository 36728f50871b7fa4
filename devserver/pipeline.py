import asyncio
import html
import http
import inspect
import logging
import mimetypes
import os

from aiohttp import web
from multidict import CIMultiDict

from .augment import RELOAD_CLIENT, augment_content, integrity_for, is_html, script_tag
from .errors import InvalidPathError
from .resolver import Found, Redirect

log = logging.getLogger(__name__)

CLIENT_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "client")
MORPHDOM = "morphdom.js"
JS_CONTENT_TYPE = "application/javascript; charset=utf-8"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"
NOT_FOUND_PAGE = "404.html"


class ResourceCache:
    """Client assets shipped with the package, read once."""

    def __init__(self, base_dir=CLIENT_DIR):
        self.base_dir = base_dir
        self._files = {}

    def get(self, name):
        if name not in self._files:
            with open(os.path.join(self.base_dir, name), "r", encoding="utf-8") as f:
                self._files[name] = f.read()
        return self._files[name]


class ResponseSink:
    """Buffered response handed to middleware.

    Nothing reaches the socket until ``to_response`` builds the aiohttp
    response, which is where HTML bodies get the reload script.
    """

    def __init__(self):
        self.status = 200
        self.headers = CIMultiDict()
        self.file_path = None
        self.ended = False
        self._chunks = []

    def _check_open(self):
        if self.ended:
            raise RuntimeError("Response already ended")

    def set_status(self, status):
        self._check_open()
        self.status = status

    def set_header(self, name, value):
        self._check_open()
        self.headers[name] = value

    def get_header(self, name, default=None):
        return self.headers.get(name, default)

    def write(self, data):
        self._check_open()
        if data:
            self._chunks.append(data)

    def end(self, data=None):
        self.write(data)
        self.ended = True

    def redirect(self, location, status=301):
        self.set_status(status)
        self.set_header("Location", location)
        self.end()

    def reset(self):
        """Drop whatever was buffered so far, headers included."""
        self._check_open()
        self.status = 200
        self.headers = CIMultiDict()
        self.file_path = None
        self._chunks = []

    def send_file(self, path):
        self._check_open()
        self.file_path = path
        self.ended = True

    @property
    def body(self):
        if all(isinstance(c, str) for c in self._chunks):
            return "".join(self._chunks)
        return b"".join(c.encode("utf-8") if isinstance(c, str) else c for c in self._chunks)

    def to_response(self, augment=None):
        if self.file_path is not None:
            return web.FileResponse(self.file_path, status=self.status, headers=self.headers)

        body = self.body
        if augment is not None and is_html(self.headers.get("Content-Type")):
            if isinstance(body, bytes):
                body = body.decode("utf-8", errors="replace")
            body = augment(body)
        if isinstance(body, str):
            body = body.encode("utf-8")
        return web.Response(status=self.status, headers=self.headers, body=body)


ERROR_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>Error</title>
</head>
<body>
<pre>{message}</pre>
</body>
</html>
"""


class FallbackHandler:
    """Terminates any request nothing else answered."""

    def __init__(self, logger, output_dir, template_path):
        self.logger = logger
        self.output_dir = output_dir
        self.template_path = template_path

    def local_path(self, request_path):
        abs_output = self.template_path.absolute_path(self.output_dir)
        full = os.path.join(abs_output, request_path.lstrip("/"))
        return self.template_path.strip_leading_sub_path(full, abs_output)

    def not_found_page(self):
        path = os.path.join(self.template_path.absolute_path(self.output_dir), NOT_FOUND_PAGE)
        if not os.path.isfile(path):
            return None
        try:
            return _read_text(path)
        except OSError as e:
            log.debug("Could not read %s: %s", path, e)
            return None

    def handle(self, request, response, status=404, message=None):
        if status == 404:
            text = f"Cannot {request.method} {request.path}"
        else:
            text = message or http.HTTPStatus(status).phrase

        if response.ended:
            # too late to change what goes out, just report it
            self.logger.error(f"Request for {request.path} failed after responding: {text}")
            return

        if status == 404:
            self.logger.error(
                f"HTTP {status}: Template not found in output directory "
                f"({self.output_dir}): {self.local_path(request.path)}"
            )
        else:
            self.logger.error(f"HTTP {status}: {text}")

        body = self.not_found_page() if status == 404 else None
        if body is None:
            body = ERROR_PAGE.format(message=html.escape(text))

        response.reset()
        response.set_status(status)
        response.set_header("Content-Type", HTML_CONTENT_TYPE)
        response.end(body)


def _read_text(path):
    with open(path, "rb") as f:
        return f.read().decode("utf-8", errors="replace")


async def call_handler(handler, request, response, next_):
    fn = getattr(handler, "handle", handler)
    result = fn(request, response, next_)
    if inspect.isawaitable(result):
        await result


class RequestPipeline:
    def __init__(self, config, resolver, fallback, resources=None):
        self.config = config
        self.resolver = resolver
        self.fallback = fallback
        self.resources = resources or ResourceCache()
        folder = config.injected_folder_name
        self.reserved = {
            f"/{folder}/{RELOAD_CLIENT}": RELOAD_CLIENT,
            f"/{folder}/{MORPHDOM}": MORPHDOM,
        }
        self._script = None

    @property
    def script(self):
        if self._script is None:
            integrity = integrity_for(self.resources.get(RELOAD_CLIENT))
            self._script = script_tag(self.config.injected_folder_name, integrity)
        return self._script

    def augment(self, content):
        return augment_content(content, self.script)

    async def handle(self, request):
        response = ResponseSink()

        asset = self.reserved.get(request.path)
        if asset:
            response.set_header("Content-Type", JS_CONTENT_TYPE)
            response.end(self.resources.get(asset))
            return response.to_response()

        try:
            await self.run_chain(request, response)
        except Exception as e:
            log.exception("Request handling failed for %s", request.path)
            self.fallback.handle(request, response, 500, f"{type(e).__name__}: {e}")

        if not response.ended:
            self.fallback.handle(request, response, 404)

        return response.to_response(self.augment if self.config.enabled else None)

    async def run_chain(self, request, response):
        handlers = list(self.config.middleware) + [self.serve_output]

        async def dispatch(index):
            if index >= len(handlers) or response.ended:
                return
            pending = None

            def next_():
                # sync handlers call next() without awaiting it
                nonlocal pending
                if pending is None:
                    pending = asyncio.ensure_future(dispatch(index + 1))
                return pending

            await call_handler(handlers[index], request, response, next_)
            if pending is not None and not pending.done():
                await pending

        await dispatch(0)

    async def serve_output(self, request, response, next_):
        try:
            match = self.resolver.resolve(request.raw_path)
        except InvalidPathError as e:
            self.fallback.handle(request, response, 400, str(e))
            return

        if isinstance(match, Found):
            mime_type = mimetypes.guess_type(match.file_path)[0]
            if mime_type == "text/html":
                try:
                    contents = await asyncio.get_running_loop().run_in_executor(
                        None, _read_text, match.file_path
                    )
                except OSError as e:
                    self.fallback.handle(request, response, 500, str(e))
                    return
                response.set_header("Content-Type", HTML_CONTENT_TYPE)
                response.end(contents)
                return

            if mime_type:
                response.set_header("Content-Type", mime_type)
            response.send_file(match.file_path)
            return

        if isinstance(match, Redirect):
            response.redirect(match.target_url, match.status_code)
            return

        await next_()
