from __future__ import annotations

import argparse
import logging
import os
import sys

from autocommit.core import git as git_mod
from autocommit.core import paths
from autocommit.core.config import Settings
from autocommit.core.cron import ScheduleRegistry
from autocommit.core.errors import AutocommitError, VersionControlFailure
from autocommit.core.pipeline import CommitPipeline


log = logging.getLogger("autocommit")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _die(msg: str) -> None:
    print(msg, file=sys.stderr)
    sys.exit(1)


def _print_kv(title: str, value: str) -> None:
    print(f"{title}: {value}")


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def setup_logging(level: str | None = None) -> None:
    name = (level or os.getenv("AUTOCOMMIT_LOG") or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def cmd_run(args: argparse.Namespace, settings: Settings) -> None:
    result = CommitPipeline(settings).run(args.path)
    if not result.committed:
        _print_kv("status", "no changes")
        return
    _print_kv("commit", result.commit or "")
    _print_kv("branch", result.branch or "")
    _print_kv("message", result.message or "")


def cmd_create(args: argparse.Namespace, settings: Settings) -> None:
    log.info("Creating autocommit on %s with frequency %d", args.path, args.frequency)
    entry = ScheduleRegistry(settings).add(args.path, args.frequency)
    repo_root = entry.identity_key or paths.canonical(args.path)
    try:
        if git_mod.ensure_excluded(repo_root, paths.LOG_NAME):
            log.info("Excluded %s from %s", paths.LOG_NAME, repo_root)
    except (OSError, VersionControlFailure) as exc:
        # The entry is already installed; the log just stays visible to git
        log.warning("Could not exclude %s in %s: %s", paths.LOG_NAME, repo_root, exc)
    _print_kv("repo", repo_root)
    _print_kv("schedule", " ".join(entry.cadence))
    _print_kv("log", paths.log_path(repo_root))


def cmd_list(args: argparse.Namespace, settings: Settings) -> None:
    entries = ScheduleRegistry(settings).list()
    log.info("Found %d autocommits", len(entries))
    if not entries:
        print("no autocommits")
        return
    for entry in entries:
        print(entry.serialize())


def cmd_delete(args: argparse.Namespace, settings: Settings) -> None:
    entry = ScheduleRegistry(settings).remove(args.path)
    _print_kv("deleted", entry.identity_key or args.path)


def cmd_watch(args: argparse.Namespace, settings: Settings) -> None:
    # watchdog is only needed for this command
    from autocommit.watcher import start_watching

    start_watching(CommitPipeline(settings), args.path, args.idle)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="autocommit",
        description="Commit and push a git working tree with a summarized message.",
    )
    parser.add_argument("--version", action="version", version="autocommit 0.1.0")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    sub = parser.add_subparsers(dest="cmd")

    run = sub.add_parser("run", help="Commit and push pending changes once.")
    run.add_argument("path")
    run.set_defaults(func=cmd_run)

    create = sub.add_parser("create", help="Register a recurring autocommit in crontab.")
    create.add_argument("--path", "-p", required=True, help="Path to the git repo.")
    create.add_argument(
        "--frequency", "-f", required=True, type=_positive_int,
        help="Minutes between autocommits.",
    )
    create.set_defaults(func=cmd_create)

    list_cmd = sub.add_parser("list", help="List currently configured autocommits.")
    list_cmd.set_defaults(func=cmd_list)

    delete = sub.add_parser("delete", help="Remove the autocommit registered for a repo.")
    delete.add_argument("path", help="Path of autocommit repo to delete.")
    delete.set_defaults(func=cmd_delete)

    watch = sub.add_parser("watch", help="Commit whenever the tree goes idle.")
    watch.add_argument("path")
    watch.add_argument("--idle", type=float, default=30.0, help="Idle timeout in seconds.")
    watch.set_defaults(func=cmd_watch)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    setup_logging(args.log_level)
    try:
        settings = Settings.from_env()
    except ValueError as exc:
        _die(f"invalid configuration: {exc}")
    try:
        args.func(args, settings)
    except AutocommitError as exc:
        _die(str(exc))


if __name__ == "__main__":
    main()
