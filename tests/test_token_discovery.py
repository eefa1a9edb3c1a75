"""
Tests for token_discovery module

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

import pytest

from ghbu.token_discovery import get_github_token


class TestGetGitHubToken:
    """Tests for GitHub token discovery"""

    def test_github_token_from_env(self, monkeypatch):
        """Test GitHub token is read from GITHUB_TOKEN env var"""
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_test_token_12345")
        monkeypatch.delenv("GH_TOKEN", raising=False)

        token = get_github_token()
        assert token == "ghp_test_token_12345"

    def test_gh_token_fallback(self, monkeypatch):
        """Test GH_TOKEN is used when GITHUB_TOKEN is not set"""
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.setenv("GH_TOKEN", "ghp_fallback_token")

        token = get_github_token()
        assert token == "ghp_fallback_token"

    def test_github_token_priority(self, monkeypatch):
        """Test GITHUB_TOKEN takes priority over GH_TOKEN"""
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_primary")
        monkeypatch.setenv("GH_TOKEN", "ghp_secondary")

        token = get_github_token()
        assert token == "ghp_primary"

    def test_custom_environ(self):
        """Test an explicit environment mapping is used instead of os.environ"""
        assert get_github_token({"GH_TOKEN": "ghp_mapping"}) == "ghp_mapping"

    def test_no_token_without_cli(self):
        assert get_github_token({}, use_gh_cli=False) is None

    def test_gh_cli_token(self, monkeypatch):
        """Test token is read from `gh auth token`"""

        def fake_run(cmd, **kwargs):
            assert cmd == ["gh", "auth", "token"]
            return subprocess.CompletedProcess(cmd, 0, "gho_cli_token\n", "")

        monkeypatch.setattr("ghbu.token_discovery.subprocess.run", fake_run)

        assert get_github_token({}) == "gho_cli_token"

    @pytest.mark.parametrize(
        "error", [FileNotFoundError("gh"), subprocess.TimeoutExpired("gh", 5)]
    )
    def test_gh_cli_unavailable(self, monkeypatch, error):
        def fake_run(cmd, **kwargs):
            raise error

        monkeypatch.setattr("ghbu.token_discovery.subprocess.run", fake_run)

        assert get_github_token({}) is None

    def test_gh_cli_not_logged_in(self, monkeypatch):
        monkeypatch.setattr(
            "ghbu.token_discovery.subprocess.run",
            lambda cmd, **kwargs: subprocess.CompletedProcess(cmd, 1, "", "not logged in"),
        )

        assert get_github_token({}) is None
