"""
Cron Layer - Recurring autocommit declarations in the user's crontab.

An entry is one crontab line of the form
``<min> <hour> <day> <month> <weekday> <command> <arg>...``. Lines that
carry the ownership marker belong to autocommit; everything else in the
table is foreign and is written back untouched on every mutation.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from . import paths
from .config import CREDENTIAL_VAR, MARKER, Settings
from .errors import DuplicateEntry, IOFailure, MissingCredential, NotFound, ParseError
from .util import run


log = logging.getLogger(__name__)

RUN_SUBCOMMAND = "run"


@dataclass(frozen=True)
class ScheduleEntry:
    cadence: tuple[str, ...]
    command: str
    args: tuple[str, ...]

    @classmethod
    def parse(cls, line: str) -> "ScheduleEntry":
        """Parse one crontab line. Tokens are split on whitespace only."""
        parts = line.split()
        if len(parts) < 6:
            raise ParseError(f"Invalid cron line, missing parts: {line!r}")
        cadence = tuple(parts[:5])
        command = parts[5]
        args = tuple(parts[6:])
        if not command or not args:
            raise ParseError(f"Invalid cron line, missing command arguments: {line!r}")
        if any(not field for field in cadence):
            raise ParseError(f"Invalid cron line frequency, missing parts: {line!r}")
        return cls(cadence, command, args)

    @classmethod
    def for_repo(cls, repo_root: str, frequency: int, executable: str) -> "ScheduleEntry":
        if frequency < 1:
            raise ValueError("frequency must be at least one minute")
        return cls(
            cadence=(f"*/{frequency}", "*", "*", "*", "*"),
            command=executable,
            args=(RUN_SUBCOMMAND, repo_root, ">>", paths.log_path(repo_root), "2>&1"),
        )

    @property
    def identity_key(self) -> str | None:
        """Canonical repository path this entry commits, if present."""
        if len(self.args) < 2:
            return None
        return self.args[1]

    def serialize(self) -> str:
        return " ".join((*self.cadence, self.command, *self.args))

    def __str__(self) -> str:
        return self.serialize()


def _is_owned(line: str, marker: str) -> bool:
    return marker in line


def _is_credential(line: str) -> bool:
    return line.strip().startswith(f"{CREDENTIAL_VAR}=")


def _own_credential_index(lines: list[str], marker: str) -> int | None:
    """Index of the credential line written above the owned block, if any."""
    first_owned = next((i for i, line in enumerate(lines) if _is_owned(line, marker)), None)
    if first_owned is None:
        return None
    i = first_owned - 1
    while i >= 0 and not lines[i].strip():
        i -= 1
    if i >= 0 and _is_credential(lines[i]):
        return i
    return None


class CrontabTable:
    """The current user's crontab, read with ``crontab -l`` and installed
    from a staging file with ``crontab <file>``."""

    def __init__(self, staging_path: str):
        self.staging_path = staging_path

    def read(self) -> list[str]:
        try:
            res = run(["crontab", "-l"], strip=False)
        except FileNotFoundError:
            raise IOFailure("crontab is not installed or not found in PATH")
        if res.code != 0:
            # An empty table is reported as an error by most cron implementations
            if "no crontab" in res.stderr.lower():
                return []
            raise IOFailure(f"crontab -l failed: {res.stderr}")
        return res.stdout.splitlines()

    def install(self, lines: list[str]) -> None:
        data = "\n".join(lines) + "\n"
        try:
            os.makedirs(os.path.dirname(self.staging_path) or ".", exist_ok=True)
            with open(self.staging_path, "w", encoding="utf-8") as f:
                f.write(data)
        except OSError as exc:
            raise IOFailure(f"Cannot write crontab staging file {self.staging_path}: {exc}")
        try:
            res = run(["crontab", self.staging_path])
        except FileNotFoundError:
            raise IOFailure("crontab is not installed or not found in PATH")
        if res.code != 0:
            raise IOFailure(f"crontab install failed: {res.stderr}")


class ScheduleRegistry:
    def __init__(self, settings: Settings, table: CrontabTable | None = None):
        self.settings = settings
        self.table = table if table is not None else CrontabTable(settings.staging_path)
        self.marker = MARKER

    def list(self) -> list[ScheduleEntry]:
        return [
            ScheduleEntry.parse(line)
            for line in self.table.read()
            if _is_owned(line, self.marker)
        ]

    def add(self, path: str, frequency: int) -> ScheduleEntry:
        repo_root = paths.require_work_tree(path)
        entries = self.list()
        for entry in entries:
            if entry.identity_key == repo_root:
                raise DuplicateEntry(f"Autocommit already exists on path {repo_root}")

        entry = ScheduleEntry.for_repo(repo_root, frequency, self.settings.executable)
        entries.append(entry)
        self.write(entries)
        log.info("Registered %s every %d minute(s)", repo_root, frequency)
        return entry

    def remove(self, path: str) -> ScheduleEntry:
        repo_root = paths.canonical(path)
        entries = self.list()
        retained = [e for e in entries if e.identity_key != repo_root]
        if len(retained) == len(entries):
            raise NotFound(f"Autocommit not found on path {repo_root}")
        removed = next(e for e in entries if e.identity_key == repo_root)
        log.debug("Retained entries: %s", retained)
        self.write(retained)
        log.info("Removed %s", repo_root)
        return removed

    def write(self, entries: list[ScheduleEntry]) -> None:
        """Install ``entries`` as the complete set of owned lines.

        Foreign lines, foreign credential assignments included, are kept in
        place. Previously owned lines and the credential line written directly
        above them by an earlier call are replaced by a fresh block at the end
        of the table; with no entries left the block is dropped entirely. The
        staging write and the install are two steps: a crash between them
        leaves the old table installed.
        """
        if not self.settings.has_credential:
            raise MissingCredential(
                f"{CREDENTIAL_VAR} must be set to install autocommit entries"
            )
        current = self.table.read()
        own_credential = _own_credential_index(current, self.marker)
        foreign = [
            line
            for i, line in enumerate(current)
            if not _is_owned(line, self.marker) and i != own_credential
        ]
        while foreign and not foreign[-1].strip():
            foreign.pop()

        lines = list(foreign)
        if entries:
            if lines:
                lines.append("")
            lines.append(f"{CREDENTIAL_VAR}={self.settings.api_key}")
            lines.append("")
            lines.extend(entry.serialize() for entry in entries)
        self.table.install(lines)
