from __future__ import annotations

import os
import shutil
import sys
import tempfile

from .errors import NotAWorkingTree


LOG_NAME = ".autocommit_log"
STAGING_NAME = "autocommit-crontab.txt"


def canonical(path: str) -> str:
    return os.path.realpath(os.path.expanduser(path))


def is_work_tree_root(path: str) -> bool:
    # .git is a directory in a normal clone and a file in linked worktrees
    return os.path.exists(os.path.join(path, ".git"))


def require_work_tree(path: str) -> str:
    root = canonical(path)
    if not os.path.isdir(root) or not is_work_tree_root(root):
        raise NotAWorkingTree(f"Not a git working tree: {root}")
    return root


def log_path(repo_root: str) -> str:
    return os.path.join(repo_root, LOG_NAME)


def staging_path() -> str:
    return os.path.join(tempfile.gettempdir(), STAGING_NAME)


def default_ssh_key() -> str:
    return os.path.join(os.path.expanduser("~"), ".ssh", "id_rsa")


def own_executable() -> str:
    found = shutil.which("autocommit")
    if found:
        return os.path.realpath(found)
    return os.path.realpath(sys.argv[0])
