"""
GitHub Releases client.

Provides the HTTP client for the remote release source: the paginated
release list, single release lookup by tag, and the per-release
checksums.txt download. Handles authentication and maps transport and
status failures onto a small exception hierarchy.

Any failure while listing releases is fatal to the caller: a missing page
would look like deleted releases and cause false removals.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote

import httpx

from hostdb import __version__
from hostdb.config import (
    DEFAULT_API_URL,
    DEFAULT_DOWNLOAD_URL,
    DEFAULT_PAGE_SIZE,
    DEFAULT_REQUEST_TIMEOUT,
)
from hostdb.platforms import CHECKSUMS_FILENAME

logger = logging.getLogger(__name__)


# ============================================================================
# Constants
# ============================================================================

USER_AGENT = f"hostdb-releases/{__version__}"
GITHUB_API_VERSION = "2022-11-28"


# ============================================================================
# Exceptions
# ============================================================================


class ApiError(Exception):
    """Base exception for GitHub API errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ConnectionError(ApiError):
    """Raised when the request could not be completed (network, timeout)."""

    pass


class AuthenticationError(ApiError):
    """Raised when the token is rejected."""

    pass


class NotFoundError(ApiError):
    """Raised when the release or asset does not exist."""

    pass


class RateLimitError(ApiError):
    """Raised when the API rate limit is exhausted."""

    pass


# ============================================================================
# Data Types
# ============================================================================


@dataclass(frozen=True)
class RemoteAsset:
    """A release asset as reported by GitHub."""

    name: str
    url: str
    size: int


@dataclass(frozen=True)
class RemoteRelease:
    """A GitHub release reduced to the fields the manifest needs."""

    tag: str
    published_at: Optional[str]
    assets: tuple[RemoteAsset, ...]
    draft: bool = False

    @property
    def is_published(self) -> bool:
        return not self.draft and bool(self.published_at)


def parse_release(data: Any) -> RemoteRelease:
    """
    Convert a GitHub release JSON object into a RemoteRelease.

    Raises:
        ApiError: If required fields are missing or mistyped
    """
    if not isinstance(data, dict):
        raise ApiError("Malformed release: expected an object")

    tag = data.get("tag_name")
    if not isinstance(tag, str) or not tag:
        raise ApiError("Malformed release: missing tag_name")

    assets = []
    for item in data.get("assets") or []:
        name = item.get("name") if isinstance(item, dict) else None
        url = item.get("browser_download_url") if isinstance(item, dict) else None
        size = item.get("size") if isinstance(item, dict) else None
        if not isinstance(name, str) or not isinstance(url, str):
            raise ApiError(f"Malformed asset in release {tag}")
        if isinstance(size, bool) or not isinstance(size, int):
            raise ApiError(f"Malformed size for asset {name} in release {tag}")
        assets.append(RemoteAsset(name=name, url=url, size=size))

    return RemoteRelease(
        tag=tag,
        published_at=data.get("published_at"),
        assets=tuple(assets),
        draft=data.get("draft") is True,
    )


# ============================================================================
# GitHubReleaseClient Class
# ============================================================================


class GitHubReleaseClient:
    """
    HTTP client for one repository's GitHub Releases.

    Requests are issued one at a time and each carries an explicit timeout.

    Attributes:
        repository: owner/name of the repository
    """

    def __init__(
        self,
        repository: str,
        token: Optional[str] = None,
        api_url: str = DEFAULT_API_URL,
        download_url: str = DEFAULT_DOWNLOAD_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        """
        Initialize the client.

        Args:
            repository: owner/name of the repository
            token: Optional GitHub token, attached to every request
            api_url: REST API base URL
            download_url: Base URL for release downloads
            timeout: Request timeout in seconds
            page_size: Releases per page when listing

        Raises:
            ValueError: If repository is empty
        """
        if not repository:
            raise ValueError("repository is required")

        self._repository = repository
        self._download_url = download_url.rstrip("/")
        self._page_size = page_size

        headers = {"User-Agent": USER_AGENT}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.Client(
            base_url=api_url.rstrip("/"),
            headers={
                **headers,
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
            },
            timeout=timeout,
        )
        # Release downloads redirect to the asset storage host
        self._download_client = httpx.Client(
            headers=headers,
            timeout=timeout,
            follow_redirects=True,
        )

    @property
    def repository(self) -> str:
        """Get the repository slug."""
        return self._repository

    # -------------------------------------------------------------------------
    # Requests
    # -------------------------------------------------------------------------

    def _request(self, client: httpx.Client, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = client.get(url, **kwargs)
        except httpx.TimeoutException as e:
            raise ConnectionError(f"Request timed out: {url}: {e}")
        except httpx.HTTPError as e:
            raise ConnectionError(f"Request failed: {url}: {e}")

        logger.debug(f"GET {url} -> {response.status_code}")
        self._raise_for_status(response, url)
        return response

    @staticmethod
    def _json(response: httpx.Response, url: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(
                f"Response from {url} is not valid JSON: {e}",
                status_code=response.status_code,
            )

    @staticmethod
    def _raise_for_status(response: httpx.Response, url: str) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return
        if status == 401:
            raise AuthenticationError("GitHub rejected the token", status_code=401)
        if status in (403, 429) and response.headers.get("X-RateLimit-Remaining") == "0":
            reset = response.headers.get("X-RateLimit-Reset", "unknown")
            raise RateLimitError(
                f"GitHub rate limit exhausted (resets at {reset}); set GITHUB_TOKEN",
                status_code=status,
            )
        if status == 404:
            raise NotFoundError(f"Not found: {url}", status_code=404)
        raise ApiError(f"Request to {url} failed with status {status}", status_code=status)

    # -------------------------------------------------------------------------
    # Releases
    # -------------------------------------------------------------------------

    def list_releases(self) -> list[RemoteRelease]:
        """
        Fetch every release in the repository.

        Pages until a page returns fewer results than the page size.
        Duplicate tags keep the last release seen.

        Returns:
            Releases in the order GitHub returned them

        Raises:
            ApiError: On any network or status failure
        """
        releases: dict[str, RemoteRelease] = {}
        url = f"/repos/{self._repository}/releases"
        page = 1

        logger.info(f"Fetching releases from GitHub for {self._repository}...")

        while True:
            response = self._request(
                self._client,
                url,
                params={"per_page": self._page_size, "page": page},
            )
            items = self._json(response, url)
            if not isinstance(items, list):
                raise ApiError(f"Unexpected release list payload on page {page}")

            for item in items:
                release = parse_release(item)
                if release.tag in releases:
                    logger.warning(f"Duplicate release tag from GitHub: {release.tag}")
                releases[release.tag] = release

            logger.info(f"  Fetched page {page}: {len(items)} releases")

            if len(items) < self._page_size:
                break
            page += 1

        logger.info(f"  Total releases found: {len(releases)}")
        return list(releases.values())

    def get_release(self, tag: str) -> RemoteRelease:
        """
        Fetch one release by tag.

        Raises:
            NotFoundError: If the tag has no release
            ApiError: On any other failure
        """
        url = f"/repos/{self._repository}/releases/tags/{quote(tag, safe='')}"
        response = self._request(self._client, url)
        return parse_release(self._json(response, url))

    def checksums_url(self, tag: str) -> str:
        """Download URL of a release's checksums.txt."""
        return (
            f"{self._download_url}/{self._repository}/releases/download/"
            f"{quote(tag, safe='')}/{CHECKSUMS_FILENAME}"
        )

    def get_checksums_text(self, tag: str) -> str:
        """
        Download a release's checksums.txt.

        Raises:
            NotFoundError: If the release has no checksums file
            ApiError: On any other failure
        """
        return self._request(self._download_client, self.checksums_url(tag)).text

    # -------------------------------------------------------------------------
    # Cleanup
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close the HTTP clients."""
        self._client.close()
        self._download_client.close()

    def __enter__(self) -> "GitHubReleaseClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
