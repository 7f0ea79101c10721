from __future__ import annotations

import subprocess
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping


TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class CmdResult:
    code: int
    stdout: str
    stderr: str


def run(
    cmd: list[str],
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
    strip: bool = True,
) -> CmdResult:
    proc = subprocess.run(
        cmd,
        cwd=cwd,
        env=dict(env) if env is not None else None,
        text=True,
        encoding="utf-8",
        errors="replace",
        capture_output=True,
        check=False,
    )
    if not strip:
        return CmdResult(proc.returncode, proc.stdout, proc.stderr.strip())
    return CmdResult(proc.returncode, proc.stdout.strip(), proc.stderr.strip())


def now_local() -> str:
    return datetime.now().strftime(TIMESTAMP_FORMAT)


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit]


def chunk_text(text: str, chunk_size: int) -> list[str]:
    if chunk_size < 1:
        raise ValueError("chunk_size must be positive")
    return [text[i : i + chunk_size] for i in range(0, len(text), chunk_size)]
