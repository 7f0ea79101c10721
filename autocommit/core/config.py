from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from . import paths


CREDENTIAL_VAR = "OPENAI_API_KEY"
MARKER = "autocommit"
CHUNK_FAILURE_POLICIES = ("abort", "skip")


@dataclass(frozen=True)
class Settings:
    api_key: str | None = None
    model: str = "gpt-4o-mini"
    diff_limit: int = 1000
    chunk_size: int = 5000
    max_chunks: int = 6
    chunk_failure: str = "abort"
    author_name: str | None = None
    author_email: str | None = None
    remote: str = "origin"
    ssh_key: str = field(default_factory=paths.default_ssh_key)
    executable: str = field(default_factory=paths.own_executable)
    staging_path: str = field(default_factory=paths.staging_path)

    def __post_init__(self) -> None:
        for name in ("diff_limit", "chunk_size", "max_chunks"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be a positive integer")
        if self.chunk_failure not in CHUNK_FAILURE_POLICIES:
            raise ValueError(
                f"chunk_failure must be one of {', '.join(CHUNK_FAILURE_POLICIES)}"
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        kwargs: dict = {
            "api_key": env.get(CREDENTIAL_VAR) or None,
            "author_name": env.get("AUTOCOMMIT_AUTHOR_NAME") or None,
            "author_email": env.get("AUTOCOMMIT_AUTHOR_EMAIL") or None,
        }
        for key, var in (
            ("model", "AUTOCOMMIT_MODEL"),
            ("chunk_failure", "AUTOCOMMIT_CHUNK_FAILURE"),
            ("remote", "AUTOCOMMIT_REMOTE"),
            ("ssh_key", "AUTOCOMMIT_SSH_KEY"),
            ("executable", "AUTOCOMMIT_EXECUTABLE"),
            ("staging_path", "AUTOCOMMIT_CRONTAB_STAGING"),
        ):
            value = env.get(var)
            if value:
                kwargs[key] = value
        for key, var in (
            ("diff_limit", "AUTOCOMMIT_DIFF_LIMIT"),
            ("chunk_size", "AUTOCOMMIT_CHUNK_SIZE"),
            ("max_chunks", "AUTOCOMMIT_MAX_CHUNKS"),
        ):
            value = env.get(var)
            if value:
                try:
                    kwargs[key] = int(value)
                except ValueError:
                    raise ValueError(f"{var} must be an integer, got {value!r}")
        return cls(**kwargs)

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key)
