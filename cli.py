#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Command-line entry point: generate, link, verify and inspect."""

import argparse
import sys
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

import path_probe
from config import COUNT_ATTEMPTED, COUNTING_MODES, DEFAULT_WORKER_COUNT, SPECIAL_ENTRY_POLICIES, SPECIAL_SKIP
from core import mirror_tree
from errors import HardlinkerError, SourceNotADirectoryError
from generator import generate_tree
from link_index import verify_mirror
from logger_utils import get_logger

logger = get_logger("hardlinker.cli")

console = Console(highlight=False, soft_wrap=True)
err_console = Console(stderr=True, highlight=False, soft_wrap=True)


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hardlinker",
        description="Generate synthetic directory trees and mirror trees with hard links.",
    )
    sub = parser.add_subparsers(dest="command", metavar="<subcommand>")
    sub.required = True

    gen = sub.add_parser("generate", help="Build a balanced tree of empty files")
    gen.add_argument("dest", help="Directory to create (must not exist)")
    gen.add_argument("count", type=_non_negative_int, help="Number of files to create")

    link = sub.add_parser("link", help="Mirror a tree, hard linking every regular file")
    link.add_argument("src", help="Existing source directory")
    link.add_argument("dest", help="Directory to create (must not exist)")
    link.add_argument(
        "workers",
        nargs="?",
        type=_positive_int,
        default=DEFAULT_WORKER_COUNT,
        help=f"Number of link worker threads (default: {DEFAULT_WORKER_COUNT})",
    )
    link.add_argument(
        "--counting",
        choices=COUNTING_MODES,
        default=COUNT_ATTEMPTED,
        help="Count files when submitted (attempted) or when linked (confirmed)",
    )
    link.add_argument(
        "--special",
        choices=SPECIAL_ENTRY_POLICIES,
        default=SPECIAL_SKIP,
        help="How to treat symlinks and special files",
    )

    verify = sub.add_parser("verify", help="Check that dest mirrors src with hard links")
    verify.add_argument("src")
    verify.add_argument("dest")

    inspect = sub.add_parser("inspect", help="Browse a mirrored tree interactively")
    inspect.add_argument("src")
    inspect.add_argument("dest")
    return parser


def run_generate(args) -> int:
    result = generate_tree(
        args.dest,
        args.count,
        progress=lambda done, total: console.print(f"Created {done}/{total} files"),
    )
    console.print(f"Created {result.items_created} files and directories in {result.elapsed:.2f}s")
    return 0


def run_link(args) -> int:
    result = mirror_tree(
        args.src,
        args.dest,
        worker_count=args.workers,
        counting=args.counting,
        special_entries=args.special,
        progress=lambda seen: console.print(f"Submitted {seen} items"),
    )
    for error in result.traversal_errors:
        err_console.print(f"[yellow]{escape(str(error))}[/yellow]")
    for failure in result.link_failures:
        err_console.print(f"[yellow]{escape(str(failure))}[/yellow]")
    console.print(
        f"Created {result.items_created} files and directories in {result.elapsed:.2f}s "
        f"({result.throughput:.0f} items/s)"
    )
    if result.links_failed or result.traversal_errors or result.skipped:
        console.print(
            f"Links failed: {result.links_failed}, traversal errors: {len(result.traversal_errors)}, "
            f"skipped entries: {result.skipped}"
        )
    return 0


def run_verify(args) -> int:
    if not path_probe.is_dir(args.src):
        raise SourceNotADirectoryError(args.src)
    report = verify_mirror(args.src, args.dest)
    problems = [
        ("Missing", report.missing),
        ("Extra", report.extra),
        ("Type mismatch", report.kind_mismatch),
        ("Not linked", report.not_linked),
    ]
    lines = [f"{report.directories} directories, {report.files} files checked"]
    for label, paths in problems:
        if paths:
            lines.append(f"{label}: {len(paths)} (first: {escape(paths[0])})")
    style = "green" if report.ok else "red"
    title = "Mirror OK" if report.ok else "Mirror differs"
    console.print(Panel("\n".join(lines), title=title, style=style))
    return 0 if report.ok else 1


def run_inspect(args) -> int:
    # Imported lazily; textual is only needed for the interactive browser
    from inspector import MirrorInspector

    for path in (args.src, args.dest):
        if not path_probe.is_dir(path):
            raise SourceNotADirectoryError(path)
    MirrorInspector(args.src, args.dest).run()
    return 0


COMMANDS = {
    "generate": run_generate,
    "link": run_link,
    "verify": run_verify,
    "inspect": run_inspect,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger.debug(f"Running '{args.command}' with {vars(args)}")
    try:
        return COMMANDS[args.command](args)
    except (HardlinkerError, OSError) as e:
        logger.error(f"'{args.command}' failed: {e}")
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
