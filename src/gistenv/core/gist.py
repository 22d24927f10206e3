"""
GitHub Gist client.

The Gist is the shared store: one file named ".env" (or ending in ".env")
holds every section. fetch() returns that file's content and update()
replaces it. There is no versioning, so the last write wins.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from .config import Config


log = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT = 10


class GistError(Exception):
    """Base class for Gist API failures."""


class NotFoundError(GistError):
    """The Gist, or its .env file, doesn't exist."""


class UnauthorizedError(GistError):
    """The GitHub token is missing, invalid, or lacks access."""


@dataclass
class GistFile:
    """The env file held in a Gist."""
    filename: str
    content: str


def find_env_file(files: Dict[str, Dict[str, Any]]) -> Optional[GistFile]:
    """
    Pick the env file out of a Gist's "files" mapping.

    Args:
        files: The "files" object from the Gist API response

    Returns:
        GistFile, or None if no file is named ".env" or ends in ".env"
    """
    for name, data in files.items():
        filename = data.get("filename") or name
        if filename.endswith(".env"):
            return GistFile(filename=filename, content=data.get("content") or "")
    return None


class GistClient:
    """Fetches and replaces the env file of a single Gist."""

    def __init__(
        self,
        gist_id: str,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        api_url: str = GITHUB_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.gist_id = gist_id
        self.token = token
        self.session = session or requests.Session()
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: Config, **kwargs) -> "GistClient":
        return cls(config.require_gist_id(), token=config.github_token, **kwargs)

    @property
    def url(self) -> str:
        return f"{self.api_url}/gists/{self.gist_id}"

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            headers["Authorization"] = f"token {self.token}"
        return headers

    def _request(self, method: str, **kwargs) -> requests.Response:
        log.debug("%s %s", method, self.url)
        try:
            response = self.session.request(
                method,
                self.url,
                headers=self._headers(),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            raise GistError(f"GitHub API request failed: {e}") from e

        if response.status_code == 404:
            raise NotFoundError("Gist not found. Check your Gist ID.")
        if response.status_code in (401, 403):
            raise UnauthorizedError(
                "Invalid GitHub token. Set GISTENV_GITHUB_TOKEN or GITHUB_TOKEN "
                "in your .gistenv or environment."
            )
        if not response.ok:
            raise GistError(f"GitHub API error: {response.status_code} {response.reason}")

        return response

    def fetch(self) -> GistFile:
        """
        Fetch the env file of the Gist.

        Raises:
            NotFoundError: If the Gist or its .env file doesn't exist
            UnauthorizedError: If the token is rejected
            GistError: For any other API failure
        """
        data = self._request("GET").json()
        env_file = find_env_file(data.get("files") or {})
        if env_file is None:
            raise NotFoundError("No .env file found in the Gist")
        return env_file

    def update(self, filename: str, content: str) -> None:
        """
        Replace the content of a file in the Gist.

        Raises:
            UnauthorizedError: If no token is configured or it is rejected
            GistError: For any other API failure
        """
        if not self.token:
            raise UnauthorizedError(
                "Updating a Gist requires a GitHub token. Set GISTENV_GITHUB_TOKEN "
                "or GITHUB_TOKEN in your .gistenv or environment."
            )
        self._request("PATCH", json={"files": {filename: {"content": content}}})
