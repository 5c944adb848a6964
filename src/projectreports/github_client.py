"""Async access to the tracking service.

The labeler awaits every client call in sequence. ``AsyncGitHubClient``
adapts the blocking :class:`GitHubRestClient` by running each call in an
executor so the event loop is never blocked by HTTP I/O.
"""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from types import TracebackType
from typing import Protocol, TypeVar

from .github_rest import GitHubRestClient
from .logging import get_logger
from .models import Issue

T = TypeVar('T')


class TrackingClient(Protocol):
    async def get_issue(self, reference: str) -> Issue: ...

    async def ensure_issue_has_label(self, reference: str, name: str, color: str) -> None: ...

    async def remove_issue_label(self, reference: str, name: str) -> None: ...


class AsyncGitHubClient:
    """Async wrapper around :class:`GitHubRestClient`."""

    def __init__(self, rest_client: GitHubRestClient, max_workers: int = 1):
        self.rest = rest_client
        self.max_workers = max_workers
        self.logger = get_logger()
        self._executor: ThreadPoolExecutor | None = None

    def __enter__(self) -> AsyncGitHubClient:
        self._executor = ThreadPoolExecutor(max_workers=self.max_workers)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._executor:
            self._executor.shutdown(wait=True)
            self._executor = None

    async def __aenter__(self) -> AsyncGitHubClient:
        return self.__enter__()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)

    async def _call(self, fn: Callable[..., T], *args: str) -> T:
        loop = asyncio.get_running_loop()
        # None falls back to the loop's default executor
        return await loop.run_in_executor(self._executor, functools.partial(fn, *args))

    async def get_issue(self, reference: str) -> Issue:
        self.logger.debug("Fetching issue", issue=reference)
        return await self._call(self.rest.get_issue, reference)

    async def ensure_issue_has_label(self, reference: str, name: str, color: str) -> None:
        self.logger.debug("Ensuring label", issue=reference, label=name)
        await self._call(self.rest.ensure_issue_has_label, reference, name, color)

    async def remove_issue_label(self, reference: str, name: str) -> None:
        self.logger.debug("Removing label", issue=reference, label=name)
        await self._call(self.rest.remove_issue_label, reference, name)


def create_async_github_client(
    token: str | None, base_url: str, max_workers: int = 1
) -> AsyncGitHubClient:
    return AsyncGitHubClient(GitHubRestClient(token=token, base_url=base_url), max_workers=max_workers)


__all__ = ['AsyncGitHubClient', 'TrackingClient', 'create_async_github_client']
