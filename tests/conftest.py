"""
Shared test fixtures

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

import subprocess
from pathlib import Path

import pytest
from loguru import logger

from ghbu.base import RepositoryDescriptor


def git(*args, cwd):
    subprocess.run(["git", *args], cwd=cwd, capture_output=True, check=True)


def commit_file(repo_path: Path, name: str, content: str, message: str):
    (repo_path / name).write_text(content)
    git("add", name, cwd=repo_path)
    git("commit", "-m", message, cwd=repo_path)


@pytest.fixture
def log_messages():
    """Collect loguru messages emitted during a test"""
    messages = []
    handler_id = logger.add(
        lambda message: messages.append(message.record["message"]), level="DEBUG"
    )
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def origin_repo(tmp_path):
    """A local git repository with one commit, used as a clone source"""
    repo_path = tmp_path / "origin" / "test-repo"
    repo_path.mkdir(parents=True)

    git("init", cwd=repo_path)
    git("config", "user.email", "test@test.com", cwd=repo_path)
    git("config", "user.name", "Test User", cwd=repo_path)
    commit_file(repo_path, "README.md", "# Test Repository\n", "Initial commit")

    return repo_path


@pytest.fixture
def backup_dir(tmp_path):
    path = tmp_path / "backups"
    path.mkdir()
    return path


@pytest.fixture
def make_repo():
    """Factory for repository descriptors"""

    def _make(name: str, owner: str = "test-org", **kwargs):
        kwargs.setdefault("ssh_url", f"git@github.com:{owner}/{name}.git")
        kwargs.setdefault("https_url", f"https://github.com/{owner}/{name}.git")
        return RepositoryDescriptor(full_name=f"{owner}/{name}", name=name, **kwargs)

    return _make
