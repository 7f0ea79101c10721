from __future__ import annotations

import logging
from dataclasses import dataclass

from . import git as git_mod
from . import paths
from .util import truncate


log = logging.getLogger(__name__)

DEFAULT_DIFF_LIMIT = 1000


@dataclass(frozen=True)
class ChangeSet:
    has_changes: bool
    diff_text: str

    @property
    def is_empty(self) -> bool:
        return not self.has_changes or not self.diff_text


NO_CHANGES = ChangeSet(has_changes=False, diff_text="")


class ChangeDetector:
    def __init__(self, diff_limit: int = DEFAULT_DIFF_LIMIT):
        self.diff_limit = diff_limit

    def detect(self, repo_path: str) -> ChangeSet:
        repo_root = paths.require_work_tree(repo_path)
        status = git_mod.status_porcelain(repo_root)
        if not status:
            log.info("No changes detected.")
            return NO_CHANGES
        log.debug("%d path(s) differ from HEAD", len(status))

        diff = git_mod.diff_text(repo_root)
        log.debug("Diff string: %s", diff)
        if len(diff) > self.diff_limit:
            log.info("Diff too large, truncating to %d characters.", self.diff_limit)
            diff = truncate(diff, self.diff_limit)
        return ChangeSet(has_changes=True, diff_text=diff)
