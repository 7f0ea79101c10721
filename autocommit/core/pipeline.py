from __future__ import annotations

import logging
from dataclasses import dataclass

from . import git as git_mod
from . import paths
from .changes import ChangeDetector
from .config import Settings
from .errors import VersionControlFailure
from .summarize import CommitMessageSynthesizer


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunResult:
    committed: bool
    commit: str | None = None
    message: str | None = None
    branch: str | None = None


NOTHING_TO_DO = RunResult(committed=False)


class CommitPipeline:
    def __init__(
        self,
        settings: Settings,
        detector: ChangeDetector | None = None,
        synthesizer: CommitMessageSynthesizer | None = None,
    ):
        self.settings = settings
        self.detector = detector or ChangeDetector(settings.diff_limit)
        self.synthesizer = synthesizer or CommitMessageSynthesizer(settings)

    def run(self, repo_path: str) -> RunResult:
        repo_root = paths.require_work_tree(repo_path)
        log.info("Running %s", repo_root)

        changes = self.detector.detect(repo_root)
        if changes.is_empty:
            if changes.has_changes:
                log.info("No changes to commit, exiting.")
            return NOTHING_TO_DO

        message = self.synthesizer.synthesize(changes.diff_text)
        log.info("Commit message: %s", message)

        branch = git_mod.current_branch(repo_root)
        git_mod.add_all(repo_root)
        commit = git_mod.commit(
            repo_root,
            message,
            author_name=self.settings.author_name,
            author_email=self.settings.author_email,
        )
        log.info("Committed %s on %s", commit[:8], branch)

        try:
            git_mod.push(repo_root, self.settings.remote, branch, self.settings.ssh_key)
        except VersionControlFailure as exc:
            # The local commit stays in place
            raise VersionControlFailure(
                f"Committed {commit[:8]} locally but push to {self.settings.remote} failed: {exc}"
            ) from exc

        log.info("Changes committed and pushed.")
        return RunResult(committed=True, commit=commit, message=message, branch=branch)
