#!/usr/bin/env python3
'''
Copyright 2025 Aaron Vose (avose@aaronvose.net)
Licensed under the LGPL v2.1; see the file 'LICENSE' for details.
'''

import sys
import argparse
from pathlib import Path

from vaultnote.app import main

def _read_text(path):
    """Read a file, or stdin for '-', keeping undecodable bytes visible to validation."""
    data = sys.stdin.buffer.read() if path == "-" else Path(path).read_bytes()
    return data.decode("utf-8", errors="surrogateescape")

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vaultnote", description="VaultNote notes engine")
    parser.add_argument(
        "--data-dir",
        default=None,
        help="Data directory (default: $VAULTNOTE_DATA_DIR or ~/.local/share/vaultnote)"
    )
    parser.add_argument(
        "--verbosity",
        type=int, default=None,
        help="Set verbosity level (0=quiet, 1=normal, 2=verbose)"
    )
    parser.add_argument(
        "--stdexp",
        action="store_true",
        help="Use standard exception handling to stdout / stderr."
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("greet", help="Say hello")
    p.add_argument("name")

    p = sub.add_parser("save", help="Create a note, or update one with --id")
    p.add_argument("--id", default=None)
    p.add_argument("--title", required=True)
    body = p.add_mutually_exclusive_group()
    body.add_argument("--body", default=None)
    body.add_argument("--file", default=None, help="Read the body from a file ('-' for stdin)")

    p = sub.add_parser("show", help="Show one note")
    p.add_argument("id")

    sub.add_parser("list", help="List notes, most recently updated first")

    p = sub.add_parser("delete", help="Delete a note")
    p.add_argument("id")

    p = sub.add_parser("render", help="Render markdown to HTML")
    p.add_argument("file", nargs="?", default="-", help="Markdown file ('-' for stdin)")

    p = sub.add_parser("compact", help="Compact the change log")
    p.add_argument("--drop-tombstones", action="store_true",
                   help="Purge deleted notes entirely")

    sub.add_parser("repair", help="Cut a damaged change log back to its last good record")

    p = sub.add_parser("theme", help="Show or set the UI theme")
    p.add_argument("theme", nargs="?", default=None)

    return parser

def to_command(args):
    """Map parsed arguments to a (command, args) pair for the dispatcher."""
    if args.command == "greet":
        return "greet", {"name": args.name}
    if args.command == "save":
        text = _read_text(args.file) if args.file else (args.body or "")
        return "save_note", {"id": args.id, "title": args.title, "body": text}
    if args.command == "show":
        return "get_note", {"id": args.id}
    if args.command == "list":
        return "list_notes", {}
    if args.command == "delete":
        return "delete_note", {"id": args.id}
    if args.command == "render":
        return "parse_markdown", {"text": _read_text(args.file)}
    if args.command == "compact":
        return "compact_log", {"drop_tombstones": args.drop_tombstones}
    if args.command == "repair":
        return "repair_log", {}
    if args.command == "theme":
        if args.theme is None:
            return "get_settings", {}
        return "set_theme", {"theme": args.theme}
    raise ValueError(f"unknown command: {args.command}")

def cli(argv=None) -> int:
    args = build_parser().parse_args(argv)
    command, params = to_command(args)
    return main(
        command,
        params,
        data_dir=args.data_dir,
        verbosity=args.verbosity,
        stdexp=args.stdexp,
    )

if __name__ == "__main__":
    sys.exit(cli())
