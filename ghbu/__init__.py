"""
ghbu - GitHub repository backup tool

Backs up every repository of a GitHub user or organization to local disk,
cloning new repositories and updating (or replacing) existing copies.

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

__version__ = "0.3.0"
__author__ = "Derek"
__license__ = "Apache-2.0"
__description__ = "Back up all GitHub repositories of a user or organization to local disk"

from .base import Account, AccountKind, RepositoryDescriptor, RepositoryManager
from .config import BackupConfig, load_config
from .github_manager import GitHubManager
from .local_backup import LocalBackup
from .main import BackupOrchestrator
from .scheduler import WorkScheduler

__all__ = [
    "Account",
    "AccountKind",
    "RepositoryDescriptor",
    "RepositoryManager",
    "BackupConfig",
    "load_config",
    "GitHubManager",
    "LocalBackup",
    "WorkScheduler",
    "BackupOrchestrator",
]
