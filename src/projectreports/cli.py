"""project-reports CLI.

Subcommands:
  label        -> keep reference labels on checklist-linked issues in sync
  in-progress  -> render the in-progress report for a card type
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

from projectreports import in_progress
from projectreports.config import AppConfig, load_config
from projectreports.errors import ConfigError, SnapshotError
from projectreports.github_client import TrackingClient, create_async_github_client
from projectreports.labeler import reconcile
from projectreports.logging import configure_logging
from projectreports.models import IssueList, load_snapshot

EXIT_USAGE = 2
CONFIG_HELP = "YAML configuration file (defaults apply when omitted)"
SNAPSHOT_HELP = "JSON array of issues captured from the project board"

_MAX_HELP_WIDTH = 100


class _HelpFormatter(argparse.HelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


class _FormatterArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", _HelpFormatter)
        super().__init__(*args, **kwargs)


def _build_parser() -> argparse.ArgumentParser:
    p = _FormatterArgumentParser(
        prog="project-reports", description="Project board labeling and reports"
    )
    p.add_argument("--quiet", action="store_true", help="Only log warnings and errors")
    p.add_argument("--log-json", action="store_true", help="Emit JSON log lines")
    sub = p.add_subparsers(
        dest="cmd",
        required=True,
        parser_class=_FormatterArgumentParser,
        metavar="<command>",
    )

    pl = sub.add_parser("label", help="Sync reference labels onto checklist-linked issues")
    pl.add_argument("--config", help=CONFIG_HELP)
    pl.add_argument("--snapshot", required=True, help=SNAPSHOT_HELP)
    pl.add_argument("--write", action="store_true", help="Write labels (default is preview)")
    pl.add_argument("--token", help="GitHub token (env: GITHUB_TOKEN)")
    pl.add_argument("--summary-json", help="Write the reconcile report to this file")

    pi = sub.add_parser("in-progress", help="Render the in-progress report")
    pi.add_argument("--config", help=CONFIG_HELP)
    pi.add_argument("--snapshot", required=True, help=SNAPSHOT_HELP)
    pi.add_argument("--output", help="Write the report to this file instead of stdout")
    pi.add_argument("--json", action="store_true", help="Emit cards as JSON")
    return p


def _issue_list(path: str) -> IssueList:
    issues = IssueList(lambda issue: issue.html_url)
    issues.add(load_snapshot(path))
    return issues


def _default_client_factory(cfg: AppConfig, args: argparse.Namespace) -> TrackingClient:
    return create_async_github_client(args.token or cfg.github_token, cfg.github_api_url)


async def _run_label(cfg: AppConfig, issues: IssueList, client: Any) -> dict[str, Any]:
    if hasattr(client, "__aenter__"):
        async with client:
            report = await reconcile(cfg.labeler, issues, client)
    else:
        report = await reconcile(cfg.labeler, issues, client)
    return report.to_dict()


def _cmd_label(
    cfg: AppConfig,
    args: argparse.Namespace,
    client_factory: Callable[[AppConfig, argparse.Namespace], TrackingClient],
) -> int:
    if args.write:
        cfg.labeler.write_labels = True
    issues = _issue_list(args.snapshot)
    payload = asyncio.run(_run_label(cfg, issues, client_factory(cfg, args)))
    summary = payload["summary"]
    print(
        f"[label] parents={summary['parents_processed']} skipped={summary['parents_skipped']} "
        f"references={summary['references_seen']} errors={summary['errors']}"
        + ("" if payload["write"] else " (preview)")
    )
    if args.summary_json:
        Path(args.summary_json).write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    return 0


def _cmd_in_progress(cfg: AppConfig, args: argparse.Namespace) -> int:
    issues = _issue_list(args.snapshot)
    progress = in_progress.process(cfg.in_progress, issues)
    if args.json:
        text = json.dumps(progress.to_dict(), indent=2) + "\n"
    else:
        text = in_progress.render_markdown(progress)
    if args.output:
        Path(args.output).write_text(text, encoding="utf-8")
    else:
        sys.stdout.write(text)
    return 0


def main(
    argv: list[str] | None = None,
    *,
    client_factory: Callable[[AppConfig, argparse.Namespace], TrackingClient] | None = None,
) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        cfg = load_config(args.config)
    except ConfigError as exc:
        print(f"[config] {exc}", file=sys.stderr)
        return EXIT_USAGE
    level = "WARNING" if args.quiet else cfg.logging_level
    configure_logging(json_logging=args.log_json or cfg.logging_json_enabled, level=level)
    try:
        if args.cmd == "label":
            return _cmd_label(cfg, args, client_factory or _default_client_factory)
        return _cmd_in_progress(cfg, args)
    except SnapshotError as exc:
        print(f"[snapshot] {exc}", file=sys.stderr)
        return EXIT_USAGE


__all__ = ["main"]
