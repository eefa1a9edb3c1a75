"""
Base classes for repository listing

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

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import List, Optional

from loguru import logger

from .errors import RemoteAPIError
from .retry import call_with_retries


@dataclass(frozen=True)
class RepositoryDescriptor:
    full_name: str
    name: str
    ssh_url: str = ""
    https_url: str = ""

    def clone_url(self, prefer_ssh: bool = True) -> str:
        """Preferred clone URL, falling back to the other protocol when empty"""
        if prefer_ssh:
            return self.ssh_url or self.https_url
        return self.https_url or self.ssh_url


class AccountKind(Enum):
    USER = "user"
    ORGANIZATION = "organization"


@dataclass(frozen=True)
class Account:
    kind: AccountKind
    login: str
    is_self: bool = False


@dataclass
class Page:
    items: List[RepositoryDescriptor]
    next_page: Optional[int] = None


class RepositoryManager(ABC):
    MAX_RETRIES = 2
    PAGE_SIZE = 25

    def __init__(
        self,
        token: str,
        max_retries: int = MAX_RETRIES,
        page_size: int = PAGE_SIZE,
        retry_delay: float = 0.5,
    ):
        self.token = token
        self.max_retries = max_retries
        self.page_size = page_size
        self.retry_delay = retry_delay

    @abstractmethod
    def get_account(self, kind: AccountKind, name: Optional[str]) -> Account:
        """Resolve an account, raising RemoteAPIError if it cannot be found"""

    @abstractmethod
    def fetch_page(self, account: Account, page: int) -> Page:
        """Fetch one 1-based page of repositories, raising RemoteAPIError on failure"""

    def list_repositories(self, account: Account) -> List[RepositoryDescriptor]:
        """
        List every repository of an account, page by page.

        Each page is retried up to ``max_retries`` additional times. If a page
        still fails the whole listing fails and nothing is returned.
        """
        repos: List[RepositoryDescriptor] = []
        page: Optional[int] = 1

        while page is not None:
            result = call_with_retries(
                partial(self.fetch_page, account, page),
                max_retries=self.max_retries,
                retry_on=(RemoteAPIError,),
                delay=self.retry_delay,
                description=f"page {page} of {account.login}",
            )
            logger.debug(
                f"[LIST] Page {page} of {account.login}: {len(result.items)} repositories"
            )
            repos.extend(result.items)
            page = result.next_page

        return repos
