import json
import logging
import traceback

from aiohttp import WSMsgType, web

log = logging.getLogger(__name__)

NAMESPACE = "eleventy"
STATUS = f"{NAMESPACE}.status"
ERROR = f"{NAMESPACE}.error"
RELOAD = f"{NAMESPACE}.reload"


# -------- Messages --------
def status_message(status):
    return {"type": STATUS, "status": status}


def serialize_error(error):
    if isinstance(error, BaseException):
        stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        return {"name": type(error).__name__, "message": str(error), "stack": stack}
    if isinstance(error, dict):
        return {
            "name": str(error.get("name", "Error")),
            "message": str(error.get("message", "")),
            "stack": str(error.get("stack", "")),
        }
    return {"name": "Error", "message": str(error), "stack": ""}


def error_message(error):
    return {"type": ERROR, "error": serialize_error(error)}


def filter_build(build, files, path_prefix, transform_url):
    """Keep only the templates that changed, with path-prefixed urls."""
    files = list(files or [])
    templates = build.get("templates") if build else None
    if templates is None:
        return build
    kept = []
    for entry in templates:
        # only watched templates that were updated
        if not entry or entry.get("inputPath") not in files:
            continue
        entry["url"] = transform_url(path_prefix, entry.get("url"))
        kept.append(entry)
    build["templates"] = kept
    return build


def reload_message(subtype, files, build):
    return {
        "type": RELOAD,
        "subtype": subtype,
        "files": list(files or []),
        "build": build if build is not None else {},
    }


# -------- WebSocket --------
class ReloadChannel:
    def __init__(self, path_prefix, transform_url):
        self.path_prefix = path_prefix
        self.transform_url = transform_url
        self.clients = []
        self.attached = False

    def attach(self):
        self.attached = True

    def accepts(self, request):
        return self.attached and request.headers.get("Upgrade", "").lower() == "websocket"

    @property
    def notifier(self):
        """The most recently connected client, if any."""
        return self.clients[-1] if self.clients else None

    async def handle(self, request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self.clients.append(ws)
        log.debug("Reload client connected (%d total)", len(self.clients))

        try:
            await self._send_to(ws, json.dumps(status_message("connected")))
            async for msg in ws:
                if msg.type == WSMsgType.ERROR:
                    log.debug("Reload client error: %s", ws.exception())
                    break
        finally:
            self._drop(ws)
        return ws

    def _drop(self, ws):
        if ws in self.clients:
            self.clients.remove(ws)
            log.debug("Reload client disconnected (%d left)", len(self.clients))

    async def _send_to(self, ws, payload):
        if ws.closed:
            self._drop(ws)
            return False
        try:
            await ws.send_str(payload)
        except ConnectionError as e:
            log.debug("Dropping reload client: %s", e)
            self._drop(ws)
            return False
        return True

    async def send(self, message):
        """Broadcast to every connected client. Dropped when nobody listens."""
        if not self.clients:
            return 0
        payload = json.dumps(message)
        sent = 0
        for ws in list(self.clients):
            if await self._send_to(ws, payload):
                sent += 1
        return sent

    async def notify_reload(self, subtype=None, files=None, build=None):
        build = filter_build(build, files, self.path_prefix, self.transform_url)
        return await self.send(reload_message(subtype, files, build))

    async def notify_error(self, error):
        return await self.send(error_message(error))

    async def notify_exit(self):
        return await self.send(status_message("disconnected"))

    async def close(self):
        for ws in list(self.clients):
            await ws.close()
            self._drop(ws)
