"""GitHub release asset publisher using aiohttp — implements AssetPublisher.

Images are attached to the repository's latest release, whose download
URLs stay valid for as long as the release exists. Creating releases is
left to whoever operates the repository.
"""

import asyncio
import sys
from typing import Any, Dict, Optional, Tuple

import aiohttp

from gmat_bot.config import CONFIG
from gmat_bot.domain.errors import PublishError

UPLOAD_TIMEOUT_SECONDS = 60


def _log(msg: str):
    print(msg, file=sys.stderr)


class GitHubReleasePublisher:
    """Uploads PNG bytes as assets of the latest GitHub release."""

    def __init__(
        self,
        token: Optional[str] = None,
        repository: Optional[str] = None,
        api_base: Optional[str] = None,
    ):
        self._token = token if token is not None else CONFIG["github_token"]
        self._repository = repository if repository is not None else CONFIG["github_repository"]
        self._api_base = (api_base or CONFIG["github_api_base"]).rstrip("/")

    @property
    def is_configured(self) -> bool:
        return bool(self._token and self._repository)

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    @staticmethod
    def upload_endpoint(upload_url: str) -> str:
        """Strip the RFC 6570 `{?name,label}` suffix from a release upload_url."""
        return upload_url.split("{", 1)[0]

    async def _request(self, method: str, url: str, **kwargs) -> Tuple[int, Any]:
        """Send one request; return (status, parsed JSON or None)."""
        try:
            async with aiohttp.ClientSession() as session:
                async with session.request(
                    method,
                    url,
                    timeout=aiohttp.ClientTimeout(total=UPLOAD_TIMEOUT_SECONDS),
                    **kwargs,
                ) as resp:
                    if resp.status == 204:
                        return resp.status, None
                    try:
                        data = await resp.json(content_type=None)
                    except ValueError:
                        data = None
                    return resp.status, data
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise PublishError(f"{method} {url}: {type(e).__name__}: {e}") from e

    async def latest_release(self) -> Dict[str, Any]:
        url = f"{self._api_base}/repos/{self._repository}/releases/latest"
        status, data = await self._request("GET", url, headers=self._headers)
        if status == 404:
            raise PublishError(f"No release found in {self._repository} to attach images to")
        if status in (401, 403):
            raise PublishError(f"GitHub rejected the token for {self._repository} (HTTP {status})")
        if status >= 400 or not isinstance(data, dict) or "upload_url" not in data:
            raise PublishError(f"Unexpected latest-release response (HTTP {status})")
        return data

    async def _upload(self, release: Dict[str, Any], image: bytes, name: str):
        url = self.upload_endpoint(release["upload_url"])
        headers = dict(self._headers, **{"Content-Type": "image/png"})
        return await self._request(
            "POST", url, headers=headers, params={"name": name}, data=image
        )

    async def _delete_asset(self, release: Dict[str, Any], name: str) -> bool:
        for asset in release.get("assets") or []:
            if asset.get("name") == name:
                url = f"{self._api_base}/repos/{self._repository}/releases/assets/{asset['id']}"
                status, _ = await self._request("DELETE", url, headers=self._headers)
                return status in (204, 404)
        return False

    async def publish(self, image: bytes, name: str) -> str:
        """Upload `image` as `name`; return its browser download URL."""
        if not self.is_configured:
            raise PublishError("GITHUB_TOKEN / GITHUB_REPOSITORY not configured")

        release = await self.latest_release()
        status, data = await self._upload(release, image, name)

        if status == 422 and await self._delete_asset(release, name):
            # Same question served before: replace the stale asset
            _log(f"[github] replaced existing asset {name}")
            status, data = await self._upload(release, image, name)

        if status != 201 or not isinstance(data, dict):
            raise PublishError(f"Upload of {name} failed (HTTP {status}): {data}")
        url = data.get("browser_download_url")
        if not url:
            raise PublishError(f"Upload of {name} returned no download URL")
        _log(f"[github] uploaded {name} ({len(image)} bytes)")
        return url
