"""
Local filesystem backup functionality

Copyright 2025 HyperSec

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

import os
import shutil
import subprocess
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from loguru import logger

from .base import RepositoryDescriptor
from .errors import BackupError, ConfigError, FilesystemError, SyncError

STDERR_LIMIT = 500


class LocalState(Enum):
    ABSENT = "absent"
    PRESENT = "present"


def probe_local_state(
    backup_path: Union[str, Path], name: str, full_name: Optional[str] = None
) -> LocalState:
    """
    Check whether a local copy of a repository exists.

    Args:
        backup_path: Backup root directory
        name: Repository short name
        full_name: owner/name reported on errors, defaults to name

    Returns:
        LocalState.PRESENT if backup_path/name exists, LocalState.ABSENT if not

    Raises:
        FilesystemError: on any stat failure other than "not found"
    """
    path = Path(backup_path) / name
    try:
        path.stat()
    except FileNotFoundError:
        return LocalState.ABSENT
    except OSError as e:
        raise FilesystemError(full_name or name, e, f"cannot stat {path}: {e}") from e
    return LocalState.PRESENT


class LocalBackup:
    def __init__(
        self,
        backup_path: Union[str, Path],
        replace: bool = False,
        prefer_ssh: bool = True,
        git_binary: str = "git",
    ):
        """
        Initialize local backup manager
        Args:
            backup_path: Existing directory holding one working copy per repository
            replace: Delete and re-clone existing copies instead of pulling
            prefer_ssh: Clone over SSH when the repository has an SSH URL
            git_binary: git executable to invoke
        """
        self.backup_path = Path(backup_path)
        self.replace = replace
        self.prefer_ssh = prefer_ssh
        self.git_binary = git_binary

        if not self.backup_path.is_dir():
            raise ConfigError(f"directory does not exist: {self.backup_path}")
        logger.debug(f"[CONFIG] Local backup directory: {self.backup_path}")

    def backup_repository(self, repo: RepositoryDescriptor) -> bool:
        """
        Backup repository to local filesystem, logging any failure
        Args:
            repo: Repository descriptor
        Returns:
            bool: Success status
        """
        try:
            self.sync(repo)
            return True
        except BackupError as e:
            cause = e.cause if isinstance(e, (SyncError, FilesystemError)) else e
            logger.error(
                f"[ERROR] error backing up repository {repo.full_name}: {cause}"
            )
            return False

    def sync(self, repo: RepositoryDescriptor) -> None:
        """Clone, update or replace a single repository"""
        state = probe_local_state(self.backup_path, repo.name, repo.full_name)

        if state is LocalState.PRESENT:
            if not self.replace:
                self._update(repo)
                return
            self._remove(repo)

        self._clone(repo)

    def _clone(self, repo: RepositoryDescriptor):
        clone_url = repo.clone_url(self.prefer_ssh)
        if not clone_url:
            raise SyncError(repo.full_name, "repository has no clone URL")

        logger.info(f"[BACKUP] Backing up {repo.full_name}...")
        self._run_git(repo, ["clone", clone_url, repo.name], cwd=self.backup_path)
        logger.info(f"[SUCCESS] Done backing up {repo.full_name}.")

    def _update(self, repo: RepositoryDescriptor):
        logger.info(f"[BACKUP] Updating {repo.full_name}...")
        self._run_git(repo, ["pull"], cwd=self.backup_path / repo.name)
        logger.info(f"[SUCCESS] Done backing up {repo.full_name}.")

    def _remove(self, repo: RepositoryDescriptor):
        path = self.backup_path / repo.name
        logger.info(f"[CLEANUP] Removing existing copy of {repo.full_name}: {path}")
        try:
            shutil.rmtree(path)
        except OSError as e:
            raise FilesystemError(
                repo.full_name, e, f"failed to remove {path}: {e}"
            ) from e

    def _run_git(self, repo: RepositoryDescriptor, args: List[str], cwd: Path):
        cmd = [self.git_binary] + args
        env = dict(os.environ, GIT_TERMINAL_PROMPT="0")

        # Own session so a terminal interrupt does not kill in-flight git
        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                cwd=str(cwd),
                env=env,
                start_new_session=True,
            )
        except OSError as e:
            raise SyncError(repo.full_name, e) from e

        if result.returncode != 0:
            stderr_truncated = (result.stderr or "").strip()[:STDERR_LIMIT]
            raise SyncError(
                repo.full_name,
                f"git {args[0]} exited with status {result.returncode}: {stderr_truncated}",
            )
