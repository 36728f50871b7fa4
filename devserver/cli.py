import argparse
import asyncio
import os
import sys

from .config import DEFAULT_FOLDER, DEFAULT_PORT, DEFAULT_PORT_RETRY_LIMIT, Collaborators, normalize_path_prefix
from .errors import DevServerError
from .logger import ConsoleLogger, configure_logging
from .paths import TemplatePath, transform_url
from .server import ServerRegistry
from .watch import OutputWatcher, start_observer


def build_parser():
    parser = argparse.ArgumentParser(
        prog="devserver",
        description="Serve a built site and live reload browsers when it changes",
    )
    parser.add_argument("--dir", default=os.getcwd(), help="output directory to serve")
    parser.add_argument("--host", default=None, help="interface to bind (default: all)")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--path-prefix", default="/")
    parser.add_argument("--folder", default=DEFAULT_FOLDER, help="url folder for injected scripts")
    parser.add_argument("--port-retry-limit", type=int, default=DEFAULT_PORT_RETRY_LIMIT)
    parser.add_argument("--show-all-hosts", action="store_true")
    parser.add_argument("--no-reload", action="store_true", help="do not inject the reload client")
    parser.add_argument("--no-watch", action="store_true", help="do not watch the output directory")
    parser.add_argument("--quiet", action="store_true")
    parser.add_argument("--verbose", action="store_true")
    return parser


def options_from_args(args):
    return {
        "port": args.port,
        "host": args.host,
        "enabled": not args.no_reload,
        "show_all_hosts": args.show_all_hosts,
        "injected_folder_name": args.folder,
        "port_retry_limit": args.port_retry_limit,
    }


async def serve(args, registry=None):
    registry = registry or ServerRegistry()
    logger = ConsoleLogger(quiet=args.quiet)
    deps = Collaborators(
        logger=logger,
        output_dir=args.dir,
        template_path=TemplatePath(),
        transform_url=transform_url,
        path_prefix=normalize_path_prefix(args.path_prefix),
    )
    server = registry.get_or_create("default", deps, options_from_args(args))

    if await server.serve() is None:
        return 1

    observer = None
    if not args.no_watch:
        watcher = OutputWatcher(server, asyncio.get_running_loop(), args.dir)
        observer = start_observer(watcher)

    try:
        await asyncio.Event().wait()
    finally:
        if observer is not None:
            observer.stop()
            observer.join()
        await server.close()
    return 0


def main(argv=None):
    args = build_parser().parse_args(argv)

    if not os.path.isdir(args.dir):
        print(f"Output directory '{args.dir}' does not exist. Run the build first.", file=sys.stderr)
        return 1

    configure_logging(args.verbose)

    try:
        return asyncio.run(serve(args))
    except KeyboardInterrupt:
        return 0
    except DevServerError as e:
        print(f"devserver: {e}", file=sys.stderr)
        return 1
