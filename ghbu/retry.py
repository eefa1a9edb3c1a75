"""
Bounded retry helper

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

import time
from typing import Callable, Tuple, Type, TypeVar

from loguru import logger

from .errors import RemoteAPIError

T = TypeVar("T")


def call_with_retries(
    operation: Callable[[], T],
    max_retries: int,
    retry_on: Tuple[Type[BaseException], ...] = (RemoteAPIError,),
    delay: float = 0.5,
    description: str = "operation",
) -> T:
    """
    Call an operation, retrying it when it raises one of ``retry_on``.

    Args:
        operation: Zero-argument callable to invoke
        max_retries: Additional attempts allowed after the first failure
        retry_on: Exception types that trigger a retry
        delay: Base delay in seconds, grows linearly with each attempt
        description: Label used in log messages

    Returns:
        Whatever the operation returns on its first successful attempt

    Raises:
        The last exception raised by the operation once retries are exhausted
    """
    if max_retries < 0:
        raise ValueError("max_retries must not be negative")

    attempt = 0
    while True:
        try:
            return operation()
        except retry_on as e:
            if attempt >= max_retries:
                logger.debug(
                    f"[RETRY] Giving up on {description} after {attempt + 1} attempts: {e}"
                )
                raise
            attempt += 1
            logger.warning(
                f"[RETRY] Retry {attempt}/{max_retries} for {description}: {e}"
            )
            if delay > 0:
                time.sleep(delay * attempt)
