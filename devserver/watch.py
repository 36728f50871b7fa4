import logging
import os

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

log = logging.getLogger(__name__)

STYLESHEET_EXTENSIONS = (".css",)


def reload_subtype(files):
    if files and all(f.endswith(STYLESHEET_EXTENSIONS) for f in files):
        return "css"
    return None


class OutputWatcher(FileSystemEventHandler):
    """Turns filesystem events under the output dir into reload broadcasts.

    watchdog calls back on its own thread, so every event hops onto the
    server's loop before touching anything else. Bursts of events within
    ``delay`` seconds go out as one reload.
    """

    def __init__(self, server, loop, root, delay=0.1):
        super().__init__()
        self.server = server
        self.loop = loop
        self.root = os.path.abspath(root)
        self.delay = delay
        self.pending = set()
        self._flush_handle = None
        self._flush_task = None

    def relative(self, path):
        if isinstance(path, bytes):
            path = os.fsdecode(path)
        return os.path.relpath(os.path.abspath(path), self.root).replace(os.sep, "/")

    def on_any_event(self, event):
        if event.is_directory or event.event_type in ("opened", "closed_no_write"):
            return
        paths = [event.src_path]
        dest = getattr(event, "dest_path", None)
        if dest:
            paths.append(dest)
        for path in paths:
            self.loop.call_soon_threadsafe(self.queue, self.relative(path))

    def queue(self, path):
        self.pending.add(path)
        if self._flush_handle is None:
            self._flush_handle = self.loop.call_later(self.delay, self._schedule_flush)

    def _schedule_flush(self):
        self._flush_handle = None
        self._flush_task = self.loop.create_task(self.flush())

    async def flush(self):
        files = sorted(self.pending)
        self.pending.clear()
        if not files:
            return
        log.debug("Output changed: %s", ", ".join(files))
        await self.server.reload(reload_subtype(files), files, {"templates": []})


def start_observer(handler, recursive=True):
    observer = Observer()
    observer.schedule(handler, handler.root, recursive=recursive)
    observer.start()
    return observer
