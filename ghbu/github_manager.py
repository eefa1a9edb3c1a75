"""
GitHub repository manager

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

from typing import Any, Dict, Mapping, Optional
from urllib.parse import parse_qs, quote, urlparse

import requests
from github import (
    Auth,
    BadCredentialsException,
    Github,
    GithubException,
    UnknownObjectException,
)
from loguru import logger

from .base import Account, AccountKind, Page, RepositoryDescriptor, RepositoryManager
from .errors import RemoteAPIError

API_ERRORS = (GithubException, requests.exceptions.RequestException)


def descriptor_from_payload(repo: Mapping[str, Any]) -> RepositoryDescriptor:
    """Build a descriptor from one entry of a GitHub repository listing"""
    return RepositoryDescriptor(
        full_name=repo["full_name"],
        name=repo["name"],
        ssh_url=repo.get("ssh_url") or "",
        https_url=repo.get("clone_url") or "",
    )


def next_page_from_headers(headers: Mapping[str, str], page: int) -> Optional[int]:
    """
    Read the next page number from a response's Link header.

    Returns None when the server advertises no rel="next" link.
    """
    link = next((v for k, v in headers.items() if k.lower() == "link"), "")
    for entry in requests.utils.parse_header_links(link) if link else []:
        if entry.get("rel") != "next":
            continue
        values = parse_qs(urlparse(entry.get("url", "")).query).get("page")
        if values and values[0].isdigit():
            return int(values[0])
        return page + 1
    return None


class GitHubManager(RepositoryManager):
    def __init__(
        self,
        token: str,
        client: Optional[Github] = None,
        max_retries: int = RepositoryManager.MAX_RETRIES,
        page_size: int = RepositoryManager.PAGE_SIZE,
        retry_delay: float = 0.5,
    ):
        super().__init__(token, max_retries, page_size, retry_delay)
        self.client = client or Github(auth=Auth.Token(token), per_page=page_size)

    def get_account(self, kind: AccountKind, name: Optional[str]) -> Account:
        if kind is AccountKind.ORGANIZATION:
            if not name:
                raise RemoteAPIError("organization name is required")
            try:
                org = self.client.get_organization(name)
                login = org.login
            except API_ERRORS as e:
                raise self._api_error(e, f"organization {name}") from e
            logger.debug(f"[CONFIG] Resolved GitHub organization: {login}")
            return Account(kind=kind, login=login)

        try:
            if name:
                user = self.client.get_user(name)
            else:
                user = self.client.get_user()
            # AuthenticatedUser is lazy, reading login forces the request
            login = user.login
        except API_ERRORS as e:
            raise self._api_error(e, f"user {name or '(authenticated)'}") from e

        logger.debug(f"[CONFIG] Resolved GitHub user: {login}")
        return Account(kind=kind, login=login, is_self=not name)

    def fetch_page(self, account: Account, page: int) -> Page:
        parameters = dict(self._repo_filter(account), per_page=self.page_size, page=page)
        try:
            headers, data = self.client.requester.requestJsonAndCheck(
                "GET", self._repos_url(account), parameters=parameters
            )
        except API_ERRORS as e:
            raise self._api_error(
                e, f"repositories page {page} of {account.login}"
            ) from e

        if not isinstance(data, list):
            raise RemoteAPIError(
                f"unexpected response for repositories page {page} of {account.login}"
            )

        items = [descriptor_from_payload(repo) for repo in data]
        return Page(items=items, next_page=next_page_from_headers(headers, page))

    @staticmethod
    def _repos_url(account: Account) -> str:
        login = quote(account.login)
        if account.kind is AccountKind.ORGANIZATION:
            return f"/orgs/{login}/repos"
        if account.is_self:
            return "/user/repos"
        return f"/users/{login}/repos"

    @staticmethod
    def _repo_filter(account: Account) -> Dict[str, str]:
        if account.kind is AccountKind.ORGANIZATION:
            return {"type": "all"}
        if account.is_self:
            return {"affiliation": "owner"}
        return {"type": "owner"}

    def _api_error(self, error: Exception, what: str) -> RemoteAPIError:
        if isinstance(error, BadCredentialsException):
            logger.error("GitHub authentication failed: Invalid or expired token")
            return RemoteAPIError(f"invalid or expired GitHub token while fetching {what}")
        if isinstance(error, UnknownObjectException):
            return RemoteAPIError(f"{what} not found")
        return RemoteAPIError(f"failed to fetch {what}: {error}")
