"""
Command line entry point.

Usage:
    python -m imageblob serve --resource-base tests/webapp
    python -m imageblob verify --config app.properties --resource-base tests/webapp
"""
import argparse
import logging
import sys

from imageblob.browser import BrowserSession
from imageblob.config import PROPERTIES_FILE, Settings
from imageblob.exceptions import ConfigurationError, DriverBinaryMissing
from imageblob.orchestrator import UPLOAD_SERVLET_PATH, Verifier
from imageblob.server import DEFAULT_PORT, ServerConfig, UploadServer

log = logging.getLogger("imageblob")

DEFAULT_RESOURCE_BASE = "tests/webapp"


def build_parser():
    parser = argparse.ArgumentParser(
        prog="imageblob",
        description="Upload capture server and browser verification harness")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log at DEBUG level")
    commands = parser.add_subparsers(dest="command")
    commands.required = True

    serve = commands.add_parser("serve", help="Run the upload server")
    serve.add_argument("--port", type=int, default=DEFAULT_PORT)
    serve.add_argument("--host", default="localhost")
    serve.add_argument("--resource-base", default=DEFAULT_RESOURCE_BASE)
    serve.add_argument("--upload-dir", default=None,
                       help="Where captured files go (default: temp dir)")
    serve.add_argument("--servlet-path", default=UPLOAD_SERVLET_PATH)

    verify = commands.add_parser("verify",
                                 help="Run every scenario in a browser")
    verify.add_argument("--config", default=PROPERTIES_FILE,
                        help="Properties file (default: %(default)s)")
    verify.add_argument("--resource-base", default=DEFAULT_RESOURCE_BASE)
    verify.add_argument("--port", type=int, default=None,
                        help="Server port (default: from the settings)")
    verify.add_argument("--headed", action="store_true",
                        help="Show the browser window")
    return parser


def serve(args):
    config = ServerConfig(
        servlet_path=args.servlet_path,
        resource_base=args.resource_base,
        port=args.port,
        upload_dir=args.upload_dir,
        host=args.host,
    )
    server = UploadServer(config).start()
    try:
        server.join()
    except KeyboardInterrupt:
        log.info("Shutting down...")
    finally:
        server.stop()
    return 0


def verify(args):
    overrides = {}
    if args.headed:
        overrides["headless"] = False
    if args.port is not None:
        overrides["port"] = args.port
    settings = Settings.load(args.config, **overrides)
    config = ServerConfig(
        servlet_path=UPLOAD_SERVLET_PATH,
        resource_base=args.resource_base,
        port=settings.port,
        upload_dir=settings.upload_dir,
    )
    with UploadServer(config) as server:
        with BrowserSession.from_settings(settings) as session:
            verifier = Verifier(session, server.url, args.resource_base,
                                timeout=settings.script_timeout)
            results = verifier.run()

    failed = [r for r in results if not r.passed]
    for result in results:
        status = "ok" if result.passed else "FAIL"
        print("%-4s %s[%s] %s" % (status, result.scenario, result.index,
                                  result.source or ""))
        if result.message:
            print("     " + result.message.replace("\n", "\n     "))
    print("%d passed, %d failed" % (len(results) - len(failed), len(failed)))
    return 1 if failed else 0


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        if args.command == "serve":
            return serve(args)
        return verify(args)
    except (ConfigurationError, DriverBinaryMissing) as e:
        print("imageblob: %s" % e, file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
