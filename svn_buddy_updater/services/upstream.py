import logging
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from svn_buddy_updater.exceptions import UpstreamFetchError
from svn_buddy_updater.models import UpstreamRelease
from svn_buddy_updater.settings.sync import GitHubSettings

logger = logging.getLogger(__name__)

__all__ = ("UpstreamReleaseSource", "GitHubReleaseSource")


class UpstreamReleaseSource(Protocol):
    async def fetch_releases(self, owner: str, repo: str) -> list[UpstreamRelease]:
        pass


class GitHubReleaseSource(UpstreamReleaseSource):
    """Published releases from GitHub REST API (all pages)"""

    def __init__(
        self,
        settings: GitHubSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.settings.token:
            headers["Authorization"] = f"Bearer {self.settings.token.get_secret_value()}"

        return headers

    async def fetch_releases(self, owner: str, repo: str) -> list[UpstreamRelease]:
        """
        Fetches published releases

        :raises UpstreamFetchError: network problems, non-2xx response or malformed payload
        """
        url: str | None = f"{self.settings.api_url.rstrip('/')}/repos/{owner}/{repo}/releases"
        params: dict[str, Any] | None = {"per_page": self.settings.per_page}
        raw_releases: list[dict[str, Any]] = []

        logger.info("[GitHub] Fetching releases for %s/%s", owner, repo)
        async with httpx.AsyncClient(
            headers=self._headers(),
            timeout=self.settings.timeout,
            transport=self._transport,
        ) as client:
            while url:
                try:
                    response = await client.get(url, params=params)
                    response.raise_for_status()
                    page = response.json()
                except httpx.HTTPStatusError as exc:
                    logger.error("[GitHub] Releases request rejected: %r", exc)
                    raise UpstreamFetchError(
                        f"GitHub responded with {exc.response.status_code} for {exc.request.url}"
                    ) from exc
                except (httpx.HTTPError, ValueError) as exc:
                    logger.error("[GitHub] Unable to fetch releases: %r", exc)
                    raise UpstreamFetchError(f"Unable to fetch releases: {exc}") from exc

                if not isinstance(page, list):
                    raise UpstreamFetchError(f"Unexpected releases payload: {type(page).__name__}")

                raw_releases.extend(page)
                url = response.links.get("next", {}).get("url")
                params = None

        releases: list[UpstreamRelease] = []
        for raw_release in raw_releases:
            if raw_release.get("draft") or not raw_release.get("published_at"):
                logger.debug("[GitHub] Skipping unpublished release %r", raw_release.get("name"))
                continue

            # releases without a title are shown by their tag
            name = raw_release.get("name") or raw_release.get("tag_name")
            try:
                releases.append(UpstreamRelease.model_validate(raw_release | {"name": name}))
            except ValidationError as exc:
                raise UpstreamFetchError(f"Malformed release in payload: {exc}") from exc

        logger.info("[GitHub] Fetched %i releases for %s/%s", len(releases), owner, repo)
        return releases
