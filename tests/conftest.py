import os
import shutil
import subprocess

import pytest

from autocommit.core.config import Settings


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def git(cwd, *args):
    proc = subprocess.run(
        ["git", "-c", "user.name=Fixture", "-c", "user.email=fixture@example.com", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        check=True,
    )
    return proc.stdout.strip()


class FakeTable:
    """In-memory stand-in for the user's crontab."""

    def __init__(self, lines=None):
        self.lines = list(lines or [])
        self.installs = 0

    def read(self):
        return list(self.lines)

    def install(self, lines):
        self.lines = list(lines)
        self.installs += 1


@pytest.fixture
def settings(tmp_path):
    return Settings(
        api_key=None,
        author_name="Autocommit Test",
        author_email="autocommit@example.com",
        ssh_key=str(tmp_path / "no-such-key"),
        executable="/usr/local/bin/autocommit",
        staging_path=str(tmp_path / "crontab.txt"),
    )


@pytest.fixture
def fake_repo(tmp_path):
    """A directory that looks like a working tree root without running git."""
    root = tmp_path / "fake-repo"
    (root / ".git").mkdir(parents=True)
    return os.path.realpath(str(root))


@pytest.fixture
def repo(tmp_path):
    """A real repository with one commit on ``main`` and a bare ``origin``."""
    remote = tmp_path / "remote.git"
    git(tmp_path, "init", "--bare", "--quiet", str(remote))

    root = tmp_path / "repo"
    root.mkdir()
    git(root, "init", "--quiet")
    git(root, "symbolic-ref", "HEAD", "refs/heads/main")
    (root / "README.md").write_text("hello\n", encoding="utf-8")
    git(root, "add", "README.md")
    git(root, "commit", "--quiet", "-m", "initial")
    git(root, "remote", "add", "origin", str(remote))
    git(root, "push", "--quiet", "origin", "refs/heads/main")
    return os.path.realpath(str(root))
