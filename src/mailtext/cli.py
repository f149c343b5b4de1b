from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

import httpx

from mailtext.config import Settings, get_settings
from mailtext.services.email_body import render_body
from mailtext.services.folder_resolver import FolderNotFoundError, FolderResolver
from mailtext.services.graph_client import GraphClient
from mailtext.services.logging_config import configure_logging
from mailtext.services.mail_reader import MailReader
from mailtext.services.options import resolve_options


def _conversion_overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if args.no_wrap:
        overrides["wordwrap"] = None
    elif args.wordwrap is not None:
        overrides["wordwrap"] = args.wordwrap
    if args.heading_style:
        overrides["heading_style"] = args.heading_style
    if args.no_tables:
        overrides["tables"] = False
    if args.no_links:
        overrides["preserve_href_links"] = False
    if args.uppercase_headings:
        overrides["uppercase_headings"] = True
    return overrides


def _read_source(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8", errors="replace")


def _convert(args: argparse.Namespace, settings: Settings) -> int:
    try:
        content = _read_source(args.source)
    except OSError as exc:
        print(f"Cannot read {args.source}: {exc}", file=sys.stderr)
        return 1

    options = resolve_options(_conversion_overrides(args), base=settings.conversion_options())
    content_type = args.content_type or ("text" if args.source.lower().endswith(".txt") else "html")
    rendered = render_body(
        content,
        content_type,
        options=options,
        hide_quoted=args.hide_quoted,
        notice=settings.quoted_content_notice,
    )

    if args.output:
        Path(args.output).write_text(rendered.text, encoding="utf-8")
        print(f"Conversion saved to: {args.output}")
    else:
        print(rendered.text)
    return 0


def _reader(settings: Settings) -> MailReader:
    graph_client = GraphClient(
        tenant_id=settings.graph_tenant_id,
        client_id=settings.graph_client_id,
        client_secret=settings.graph_client_secret,
        retry_max_attempts=settings.api_retry_max_attempts,
        retry_base_delay_seconds=settings.api_retry_base_delay_seconds,
        retry_max_delay_seconds=settings.api_retry_max_delay_seconds,
    )
    return MailReader(
        graph_client,
        FolderResolver(graph_client),
        options=settings.conversion_options(),
        hide_quoted=settings.hide_quoted_content,
        notice=settings.quoted_content_notice,
    )


async def _run_graph(args: argparse.Namespace, reader: MailReader) -> Any:
    if args.command == "folders":
        return await reader.list_folders(args.mailbox, args.path)
    if args.command == "messages":
        messages = await reader.list_messages(
            args.mailbox,
            args.path,
            limit=args.limit,
            include_bodies=args.include_bodies,
            hide_quoted=args.hide_quoted or None,
        )
        return [message.to_dict() for message in messages]
    message = await reader.read(args.mailbox, args.message_id, hide_quoted=args.hide_quoted or None)
    return message.to_dict()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mailtext", description="Render email bodies as readable plain text.")
    commands = parser.add_subparsers(dest="command", required=True)

    convert = commands.add_parser("convert", help="Convert an HTML (or text) body from a file or stdin.")
    convert.add_argument("source", help="Path to the body file, or - for stdin.")
    convert.add_argument("--content-type", choices=["html", "text"], default=None)
    convert.add_argument("--wordwrap", type=int, default=None, help="Wrap width in columns.")
    convert.add_argument("--no-wrap", action="store_true", help="Disable word wrapping.")
    convert.add_argument("--heading-style", choices=["underline", "linebreak", "hashify"], default=None)
    convert.add_argument("--no-tables", action="store_true", help="Do not render tables as grids.")
    convert.add_argument("--no-links", action="store_true", help="Do not append link targets.")
    convert.add_argument("--uppercase-headings", action="store_true")
    convert.add_argument("--hide-quoted", action="store_true", help="Drop quoted prior messages.")
    convert.add_argument("--output", default="", help="Write the text to this path instead of stdout.")

    mailbox_help = "Mailbox (user principal name); defaults to GRAPH_DEFAULT_MAILBOX."

    folders = commands.add_parser("folders", help="List top-level folders or the children of a folder path.")
    folders.add_argument("--mailbox", default="", help=mailbox_help)
    folders.add_argument("--path", default="", help="Folder path such as Inbox/Projects.")

    messages = commands.add_parser("messages", help="List recent messages in a folder.")
    messages.add_argument("--mailbox", default="", help=mailbox_help)
    messages.add_argument("--path", default="inbox", help="Folder path such as Inbox/Projects.")
    messages.add_argument("--limit", type=int, default=25)
    messages.add_argument("--include-bodies", action="store_true")
    messages.add_argument("--hide-quoted", action="store_true")

    read = commands.add_parser("read", help="Read one message and print its rendered body.")
    read.add_argument("message_id")
    read.add_argument("--mailbox", default="", help=mailbox_help)
    read.add_argument("--hide-quoted", action="store_true")
    return parser


def main(argv: Optional[Sequence[str]] = None, settings: Optional[Settings] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    if args.command == "convert":
        return _convert(args, settings)

    args.mailbox = args.mailbox or settings.graph_default_mailbox
    if not args.mailbox:
        print("A mailbox is required (--mailbox or GRAPH_DEFAULT_MAILBOX).", file=sys.stderr)
        return 2

    try:
        payload = asyncio.run(_run_graph(args, _reader(settings)))
    except (FolderNotFoundError, httpx.HTTPError, RuntimeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(json.dumps(payload, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
