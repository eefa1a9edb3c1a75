"""
Error taxonomy for ghbu

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

from typing import Optional


class BackupError(Exception):
    """Base class for all ghbu errors"""


class ConfigError(BackupError):
    """Missing or invalid configuration, raised before any work starts"""


class RemoteAPIError(BackupError):
    """Account lookup or repository listing failed"""


class RepositoryError(BackupError):
    """Failure scoped to a single repository"""

    def __init__(self, repo: str, cause: object, message: Optional[str] = None):
        self.repo = repo
        self.cause = cause
        super().__init__(message or f"{repo}: {cause}")


class FilesystemError(RepositoryError):
    """Unexpected stat/remove failure under the backup directory"""


class SyncError(RepositoryError):
    """git clone or git pull failed"""
