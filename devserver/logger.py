import logging
import sys

LEVELS = {
    "log": logging.INFO,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "debug": logging.DEBUG,
}

COLORS = {
    "red": "31",
    "green": "32",
    "yellow": "33",
    "blue": "34",
    "magenta": "35",
    "cyan": "36",
    "gray": "90",
}


class ConsoleLogger:
    """Operator-facing output for the dev server.

    ``message`` follows the build tool's logger interface: a level name, an
    optional color and ``force`` to print even when quiet.
    """

    def __init__(self, name="devserver", quiet=False, stream=None):
        self.logger = logging.getLogger(name)
        self.quiet = quiet
        self.stream = stream if stream is not None else sys.stderr

    def _colorize(self, text, color):
        code = COLORS.get(color)
        isatty = getattr(self.stream, "isatty", None)
        if code and isatty is not None and isatty():
            return f"\x1b[{code}m{text}\x1b[0m"
        return text

    def message(self, text, level="log", color=None, force=False):
        lvl = LEVELS.get(level, logging.INFO)
        if self.quiet and not force and lvl < logging.WARNING:
            return
        self.logger.log(lvl, self._colorize(text, color))

    def log(self, text):
        self.message(text)

    def warn(self, text):
        self.message(text, "warn", "yellow")

    def error(self, text):
        self.message(text, "error", "red", True)


def configure_logging(verbose=False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[devserver] %(message)s",
    )
    # aiohttp's access log is noise next to our own request logging
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
