"""
export-chat: eine Chat-Konversation als Markdown (oder JSON) exportieren.

Verwendung:
    export-chat chatgpt                          # aktiven ChatGPT-Tab via CDP
    export-chat gemini --via selenium --url https://gemini.google.com/app/abc123
    export-chat copilot --format json --out ~/exports
    export-chat file conversations.json          # offline, ChatGPT-Export
    export-chat set-cookie chatgpt __Secure-next-auth.session-token
    export-chat import-cookies gemini            # Cookies aus dem Selenium-Profil
"""
import argparse
import getpass
import logging
import sys

from chat_exporter.adapters.browser import SeleniumTransport, cookies_from_driver
from chat_exporter.config import load_config, service_config
from chat_exporter.errors import ExportError
from chat_exporter.exporter import (
    CLIENTS,
    FORMATS,
    TRANSPORTS,
    ExportSession,
    export_file,
    make_client,
    open_transport,
)
from chat_exporter.utils.credentials import CookieStore

log = logging.getLogger("export-chat")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="export-chat", description="Export AI chat conversations to Markdown")
    p.add_argument("-c", "--config", default=None, help="Path to config.yaml")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    def output_args(sp):
        sp.add_argument("--format", choices=FORMATS, default=None)
        sp.add_argument("--out", default=None, help="Output directory")
        sp.add_argument("--timestamp", action="store_true", default=None,
                        help="Append YYYY-MM-DDTHH-MM-SS to the filename")

    for service in CLIENTS:
        sp = sub.add_parser(service, help=f"Export the open {service} conversation")
        sp.add_argument("--url", default=None, help="Conversation URL (default: current tab)")
        sp.add_argument("--via", choices=TRANSPORTS, default="cdp")
        output_args(sp)

    sp = sub.add_parser("file", help="Render a saved ChatGPT conversation JSON")
    sp.add_argument("path")
    output_args(sp)

    sp = sub.add_parser("set-cookie", help="Store a session cookie (value read from prompt)")
    sp.add_argument("service", choices=list(CLIENTS))
    sp.add_argument("name")

    sp = sub.add_parser("import-cookies", help="Copy session cookies from the Selenium profile")
    sp.add_argument("service", choices=list(CLIENTS))
    return p


def setup_logging(cfg: dict, verbose: bool = False):
    lc = cfg.get("logging", {})
    level = logging.DEBUG if verbose else getattr(logging, str(lc.get("level", "INFO")).upper(), logging.INFO)
    logging.basicConfig(level=level, format=lc.get("format", "%(asctime)s %(levelname)s %(name)s: %(message)s"))


def cmd_export(args, cfg: dict) -> int:
    transport = open_transport(args.command, args.via, cfg, args.url)
    try:
        session = ExportSession(make_client(args.command, transport), cfg, page_url=args.url)
        result = session.export(fmt=args.format, out_dir=args.out, with_timestamp=args.timestamp)
    finally:
        transport.close()
    print(result.path)
    return 0


def cmd_file(args, cfg: dict) -> int:
    results = export_file(args.path, cfg, fmt=args.format, out_dir=args.out, with_timestamp=args.timestamp)
    for result in results:
        print(result.path)
    return 0 if results else 1


def cmd_set_cookie(args, cfg: dict) -> int:
    value = getpass.getpass(f"{args.service} cookie {args.name}: ").strip()
    if not value:
        print("No value given, nothing stored.", file=sys.stderr)
        return 1
    try:
        CookieStore.from_config(cfg).set(args.service, args.name, value)
    except ValueError as exc:
        print(f"Invalid cookie: {exc}", file=sys.stderr)
        return 1
    return 0


def cmd_import_cookies(args, cfg: dict) -> int:
    transport = SeleniumTransport.launch(cfg["browser"], service_config(cfg, args.service)["url"])
    try:
        jar = cookies_from_driver(transport.driver)
    finally:
        transport.close()
    if not jar:
        print(f"No cookies found for {args.service}. Log in with the browser profile first.", file=sys.stderr)
        return 1
    store = CookieStore.from_config(cfg)
    cookies = store.load()
    cookies[args.service] = jar
    store.save(cookies)
    print(f"{len(jar)} cookies stored for {args.service}")
    return 0


COMMANDS = {
    "file": cmd_file,
    "set-cookie": cmd_set_cookie,
    "import-cookies": cmd_import_cookies,
}


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = load_config(args.config)
    except (FileNotFoundError, ValueError) as exc:
        print(f"Config error: {exc}", file=sys.stderr)
        return 2
    setup_logging(cfg, args.verbose)

    handler = COMMANDS.get(args.command, cmd_export)
    try:
        return handler(args, cfg)
    except ExportError as exc:
        log.error("Export fehlgeschlagen (%s): %s", type(exc).__name__, exc)
        print(f"Export failed: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nAbgebrochen.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
