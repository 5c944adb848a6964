from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import requests

from .errors import ExternalCallError, InvalidReferenceError
from .models import Issue

DEFAULT_API_URL = "https://api.github.com"
USER_AGENT = "project-reports/0.2.0"
HTTP_ERROR_STATUS = 400
HTTP_NOT_FOUND = 404
REQUEST_TIMEOUT = 30

ISSUE_URL_PATTERN = re.compile(
    r"^https?://[^/]+/(?P<owner>[^/]+)/(?P<repo>[^/]+)/issues/(?P<number>\d+)/?$"
)


class GitHubAPIError(ExternalCallError):
    """Raised when the GitHub REST API returns an error."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text


@dataclass(frozen=True)
class IssueRef:
    owner: str
    repo: str
    number: int

    @property
    def repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    @property
    def issue_path(self) -> str:
        return f"{self.repo_path}/issues/{self.number}"


def parse_issue_url(reference: str) -> IssueRef:
    match = ISSUE_URL_PATTERN.match(reference.strip())
    if not match:
        raise InvalidReferenceError(reference)
    return IssueRef(
        owner=match.group("owner"),
        repo=match.group("repo"),
        number=int(match.group("number")),
    )


@dataclass
class GitHubRestClient:
    """Blocking REST client for the issue and label operations the labeler needs."""

    token: str | None
    base_url: str = DEFAULT_API_URL
    session: requests.Session | None = None
    _session: requests.Session = field(init=False, repr=False)
    _repo_labels: dict[str, set[str]] = field(init=False, repr=False, default_factory=dict)

    def __post_init__(self) -> None:
        self._session = self.session or requests.Session()
        if self.token:
            self._session.headers.setdefault("Authorization", f"Bearer {self.token}")
        self._session.headers.setdefault("Accept", "application/vnd.github+json")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    # ---- REST helpers -------------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
        allow_not_found: bool = False,
    ) -> Any:
        url = (
            path
            if path.startswith("http")
            else f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        )
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=self._session.headers,
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise GitHubAPIError(f"GitHub API {method} {url} failed: {exc}") from exc
        if allow_not_found and response.status_code == HTTP_NOT_FOUND:
            return None
        if response.status_code >= HTTP_ERROR_STATUS:
            raise GitHubAPIError(
                f"GitHub API {method} {url} failed with {response.status_code}",
                status=response.status_code,
                response_text=response.text,
            )
        if response.text:
            try:
                return response.json()
            except ValueError:
                return response.text
        return None

    def _paginate(
        self, path: str, *, params: dict[str, Any] | None = None
    ) -> list[Any]:
        params = dict(params or {})
        per_page = params.setdefault("per_page", 100)
        params.setdefault("page", 1)
        results: list[Any] = []
        while True:
            data = self._request("GET", path, params=params)
            if not isinstance(data, list):
                break
            results.extend(data)
            if len(data) < per_page:
                break
            params["page"] = params.get("page", 1) + 1
        return results

    # ---- Issue operations --------------------------------------------
    def get_issue(self, reference: str) -> Issue:
        ref = parse_issue_url(reference)
        data = self._request("GET", ref.issue_path)
        if not isinstance(data, dict):
            raise GitHubAPIError(f"Unexpected payload for {reference}")
        data.setdefault("html_url", reference)
        return Issue.from_payload(data)

    def list_repo_labels(self, owner: str, repo: str) -> set[str]:
        key = f"{owner}/{repo}"
        cached = self._repo_labels.get(key)
        if cached is not None:
            return cached
        names: set[str] = set()
        for entry in self._paginate(f"/repos/{owner}/{repo}/labels"):
            if isinstance(entry, dict) and isinstance(entry.get("name"), str):
                names.add(entry["name"].strip().lower())
        self._repo_labels[key] = names
        return names

    def create_label(self, owner: str, repo: str, name: str, color: str) -> None:
        self._request(
            "POST",
            f"/repos/{owner}/{repo}/labels",
            json_body={"name": name, "color": color},
        )
        self.list_repo_labels(owner, repo).add(name.strip().lower())

    def ensure_issue_has_label(self, reference: str, name: str, color: str) -> None:
        ref = parse_issue_url(reference)
        if name.strip().lower() not in self.list_repo_labels(ref.owner, ref.repo):
            self.create_label(ref.owner, ref.repo, name, color)
        self._request("POST", f"{ref.issue_path}/labels", json_body={"labels": [name]})

    def remove_issue_label(self, reference: str, name: str) -> None:
        ref = parse_issue_url(reference)
        self._request(
            "DELETE",
            f"{ref.issue_path}/labels/{quote(name, safe='')}",
            allow_not_found=True,
        )


__all__ = [
    "GitHubAPIError",
    "GitHubRestClient",
    "IssueRef",
    "parse_issue_url",
]
