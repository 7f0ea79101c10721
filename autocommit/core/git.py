"""
Git Layer - All working tree interactions.

Thin wrappers over the git command line: status, diff (including untracked
content), staging, committing and pushing. Every failure is translated into
VersionControlFailure, or NotAWorkingTree when git does not recognise the
directory.
"""

from __future__ import annotations

import os
from typing import Mapping

from .errors import NotAWorkingTree, VersionControlFailure
from .util import CmdResult, run


# Plain patch text regardless of color.ui or diff.external settings
DIFF = ["diff", "--no-color", "--no-ext-diff"]


def _run_git(
    args: list[str],
    repo_root: str,
    ok_codes: tuple[int, ...] = (0,),
    env: Mapping[str, str] | None = None,
    strip: bool = True,
) -> CmdResult:
    """Run git in ``repo_root`` and raise on unexpected exit codes."""
    try:
        res = run(["git"] + args, cwd=repo_root, env=env, strip=strip)
    except FileNotFoundError:
        raise VersionControlFailure("Git is not installed or not found in PATH")
    except OSError as exc:
        raise VersionControlFailure(f"Unexpected error running git command: {exc}")
    if res.code in ok_codes:
        return res

    error_msg = res.stderr or res.stdout.strip() or f"exit code {res.code}"
    if "not a git repository" in error_msg.lower():
        raise NotAWorkingTree(f"Not a git working tree: {repo_root}")
    raise VersionControlFailure(f"Git command failed: git {' '.join(args)}\nError: {error_msg}")


def has_head(repo_root: str) -> bool:
    res = _run_git(["rev-parse", "--verify", "--quiet", "HEAD"], repo_root, ok_codes=(0, 1))
    return res.code == 0


def current_branch(repo_root: str) -> str:
    res = _run_git(["symbolic-ref", "--quiet", "--short", "HEAD"], repo_root, ok_codes=(0, 1))
    if res.code != 0 or not res.stdout:
        raise VersionControlFailure("Repository is in detached HEAD state")
    return res.stdout


def status_porcelain(repo_root: str) -> list[str]:
    res = _run_git(
        ["status", "--porcelain", "--untracked-files=all"], repo_root, strip=False
    )
    return [line for line in res.stdout.splitlines() if line.strip()]


def untracked_files(repo_root: str) -> list[str]:
    res = _run_git(
        ["ls-files", "--others", "--exclude-standard", "-z"], repo_root, strip=False
    )
    return [name for name in res.stdout.split("\0") if name]


def diff_text(repo_root: str) -> str:
    """Patch text from the last commit to the working tree, untracked files included.

    On an unborn branch the staged content is diffed against the empty tree
    instead of HEAD.
    """
    parts: list[str] = []
    if has_head(repo_root):
        parts.append(_run_git(DIFF + ["HEAD"], repo_root, strip=False).stdout)
    else:
        parts.append(_run_git(DIFF + ["--cached"], repo_root, strip=False).stdout)
        parts.append(_run_git(DIFF, repo_root, strip=False).stdout)

    for name in untracked_files(repo_root):
        # --no-index exits with 1 when the files differ
        res = _run_git(
            DIFF + ["--no-index", "--", os.devnull, name],
            repo_root,
            ok_codes=(0, 1),
            strip=False,
        )
        parts.append(res.stdout)
    return "".join(parts)


def add_all(repo_root: str) -> None:
    _run_git(["add", "-A"], repo_root)


def commit(
    repo_root: str,
    message: str,
    author_name: str | None = None,
    author_email: str | None = None,
) -> str:
    """Commit the index on the current branch and return the new commit hash."""
    args: list[str] = []
    if author_name:
        args += ["-c", f"user.name={author_name}"]
    if author_email:
        args += ["-c", f"user.email={author_email}"]
    args += ["commit", "--quiet", "-m", message]
    _run_git(args, repo_root)
    return _run_git(["rev-parse", "HEAD"], repo_root).stdout


def push(repo_root: str, remote: str, branch: str, ssh_key: str | None = None) -> None:
    env = None
    if ssh_key and os.path.isfile(ssh_key):
        env = dict(os.environ)
        env["GIT_SSH_COMMAND"] = f'ssh -i "{ssh_key}" -o IdentitiesOnly=yes'
    _run_git(["push", "--quiet", remote, f"refs/heads/{branch}"], repo_root, env=env)


def info_exclude_path(repo_root: str) -> str:
    res = _run_git(["rev-parse", "--git-path", "info/exclude"], repo_root)
    path = res.stdout
    if not os.path.isabs(path):
        path = os.path.join(repo_root, path)
    return path


def ensure_excluded(repo_root: str, pattern: str) -> bool:
    """Append ``pattern`` to .git/info/exclude unless already listed."""
    path = info_exclude_path(repo_root)
    contents = ""
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            contents = f.read()
        if pattern in contents.splitlines():
            return False
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        if contents and not contents.endswith("\n"):
            f.write("\n")
        f.write(pattern + "\n")
    return True
