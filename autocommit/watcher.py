"""
Watcher Layer - Filesystem monitoring and idle detection.

Monitors a working tree with watchdog and runs the commit pipeline once the
tree has been idle for the configured timeout. An alternative to a crontab
entry for repositories that should be committed as soon as editing stops.
"""

import logging
import os
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .core import paths
from .core.errors import AutocommitError
from .core.pipeline import CommitPipeline


log = logging.getLogger(__name__)


class IdleCommitHandler(FileSystemEventHandler):
    """Restart an idle timer on every change; fire ``on_idle`` when it expires."""

    def __init__(self, repo_root: str, on_idle: Callable[[], None], idle_timeout: float = 30):
        super().__init__()
        self.repo_root = Path(repo_root)
        self.on_idle = on_idle
        self.idle_timeout = idle_timeout
        self.last_change_time: Optional[float] = None
        self.idle_timer: Optional[threading.Timer] = None
        self.lock = threading.Lock()
        self.run_lock = threading.Lock()

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        if self.should_ignore_path(os.fsdecode(event.src_path)):
            return
        self._handle_file_change()

    def should_ignore_path(self, path: str) -> bool:
        """Ignore git metadata and the redirected autocommit log."""
        try:
            rel_path = Path(path).resolve().relative_to(self.repo_root)
        except ValueError:
            return False
        parts = rel_path.parts
        if not parts:
            return False
        return parts[0] == ".git" or rel_path.name == paths.LOG_NAME

    def _handle_file_change(self) -> None:
        with self.lock:
            self.last_change_time = time.time()
            if self.idle_timer is not None:
                self.idle_timer.cancel()
            self.idle_timer = threading.Timer(self.idle_timeout, self._on_idle_timeout)
            self.idle_timer.daemon = True
            self.idle_timer.start()

    def _on_idle_timeout(self) -> None:
        with self.lock:
            self.idle_timer = None
            if (
                self.last_change_time is None
                or time.time() - self.last_change_time < self.idle_timeout
            ):
                return

        # A run that is still in progress absorbs this tick
        if not self.run_lock.acquire(blocking=False):
            log.info("Previous run still in progress, skipping.")
            return
        try:
            self.on_idle()
        finally:
            self.run_lock.release()

    def cancel(self) -> None:
        with self.lock:
            if self.idle_timer is not None:
                self.idle_timer.cancel()
                self.idle_timer = None


def commit_on_idle(pipeline: CommitPipeline, repo_root: str) -> Callable[[], None]:
    def _run() -> None:
        try:
            pipeline.run(repo_root)
        except AutocommitError as exc:
            log.error("Autocommit failed: %s", exc)

    return _run


def start_watching(pipeline: CommitPipeline, path: str, idle_timeout: float = 30) -> None:
    """Watch ``path`` until interrupted, committing after each idle period.

    Raises:
        NotAWorkingTree: If ``path`` is not a git working tree root
    """
    repo_root = paths.require_work_tree(path)
    handler = IdleCommitHandler(repo_root, commit_on_idle(pipeline, repo_root), idle_timeout)

    observer = Observer()
    observer.schedule(handler, repo_root, recursive=True)
    observer.start()
    log.info("Watching %s for changes (idle timeout: %ss)", repo_root, idle_timeout)

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        log.info("Stopping filesystem watcher...")
    finally:
        handler.cancel()
        observer.stop()
        observer.join()
