"""WordPress REST client for the agent plugin endpoints.

All plugin routes live under ``<site>/wp-json/claude-agent/v1``. Requests are
made with a blocking ``requests.Session`` moved off the event loop with
``asyncio.to_thread``. Failures surface as ``AgentError``:
``external_service`` carrying the HTTP status, or ``timeout``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional
from urllib.parse import quote

import requests

from agent.errors import AgentError, ErrorKind, timeout_error
from .cache import (
    GLOBAL_STYLES_KEY,
    PATTERNS_KEY,
    NullCache,
    block_attributes_key,
    block_schema_key,
)

logger = logging.getLogger("gutenberg_agent")

NAMESPACE = "/claude-agent/v1"
DEFAULT_TIMEOUT = 30  # seconds per request


class WordPressClient:
    """Async facade over the plugin's REST API.

    Args:
        url: Site root URL (trailing slash optional).
        user: WordPress user name.
        app_password: Application password for basic auth.
        cache: Response cache for schemas, styles and patterns.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        url: str,
        user: str = "",
        app_password: str = "",
        *,
        cache: NullCache | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = url.rstrip("/") + "/wp-json"
        self.timeout = timeout
        self.cache = cache or NullCache()
        self.session = session or requests.Session()
        if user and app_password:
            self.session.auth = (user, app_password)
        self.session.headers.update({"Content-Type": "application/json"})

    # ---- Transport ----

    def _request_sync(self, method: str, path: str, payload: dict | None = None) -> Any:
        url = f"{self.base_url}{NAMESPACE}{path}"
        logger.debug(f"WordPress API: {method} {url}")
        try:
            resp = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise timeout_error(
                f"WordPress API timed out after {self.timeout}s: {method} {path}", path=path
            ) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"WordPress API request error: {e}")
            raise AgentError(
                ErrorKind.EXTERNAL_SERVICE,
                f"WordPress API error: {e}",
                {"service": "wordpress", "path": path},
            ) from e

        if not resp.ok:
            try:
                message = resp.json().get("message") or resp.reason
            except ValueError:
                message = resp.reason
            logger.error(f"WordPress API response error {resp.status_code}: {message}")
            raise AgentError(
                ErrorKind.EXTERNAL_SERVICE,
                f"WordPress API error: {message}",
                {"service": "wordpress", "status_code": resp.status_code, "path": path},
            )
        if not resp.content:
            return None
        return resp.json()

    async def _request(self, method: str, path: str, payload: dict | None = None) -> Any:
        return await asyncio.to_thread(self._request_sync, method, path, payload)

    async def _cached_get(self, key: str, path: str) -> Any:
        cached = await self.cache.get(key)
        if cached is not None:
            return cached
        data = await self._request("GET", path)
        await self.cache.set(key, data)
        return data

    # ---- Endpoints ----

    async def test_connection(self) -> dict:
        """Fetch system info; raises if the plugin is unreachable."""
        info = await self._request("GET", "/system/info")
        logger.info(f"WordPress connection OK: {(info or {}).get('site_name', self.base_url)}")
        return info

    async def get_system_info(self) -> dict:
        return await self._request("GET", "/system/info") or {}

    async def get_blocks_summary(self) -> dict:
        return await self._request("GET", "/blocks/summary")

    async def get_block_schema(self, block_name: str) -> dict:
        return await self._cached_get(
            block_schema_key(block_name), f"/blocks/{block_name}/schema"
        )

    async def get_block_attributes_by_group(self, block_name: str, group: str) -> dict:
        return await self._cached_get(
            block_attributes_key(block_name, group),
            f"/blocks/{block_name}/attributes/{group}",
        )

    async def get_block_presets(self, block_name: str) -> dict:
        return await self._request("GET", f"/blocks/{quote(block_name, safe='')}/presets")

    async def get_global_styles(self) -> dict:
        return await self._cached_get(GLOBAL_STYLES_KEY, "/theme/global-styles")

    async def update_global_styles(self, styles: dict) -> dict:
        result = await self._request("POST", "/theme/global-styles", {"styles": styles})
        await self.cache.delete(GLOBAL_STYLES_KEY)
        return result

    async def get_patterns(self) -> list[dict]:
        return await self._cached_get(PATTERNS_KEY, "/patterns") or []

    async def get_pattern(self, pattern_name: str) -> dict:
        return await self._request("GET", f"/patterns/{quote(pattern_name, safe='')}")

    async def get_templates(self) -> dict:
        return await self._request("GET", "/templates")

    async def get_page_context(self, post_id: int) -> dict:
        return await self._request("GET", f"/posts/{int(post_id)}/context")

    async def create_post(self, post_data: dict) -> dict:
        result = await self._request("POST", "/posts", post_data)
        logger.info(f"Post created: {(result or {}).get('id')}")
        return result

    async def update_post(self, post_id: int, post_data: dict) -> dict:
        result = await self._request("PUT", f"/posts/{int(post_id)}", post_data)
        logger.info(f"Post {post_id} updated: {', '.join(post_data)}")
        return result

    async def get_plugin_capabilities(self, plugin_name: str) -> dict | None:
        """Capabilities of a supported third-party plugin, None if it is inactive."""
        try:
            return await self._request("GET", f"/{plugin_name}/capabilities")
        except AgentError as e:
            logger.warning(f"Plugin {plugin_name} capabilities unavailable: {e.message}")
            return None

    async def close(self) -> None:
        self.session.close()
