"""
Context resolution — host init message first, URL query parameters as fallback.

Both field dialects (camelCase / snake_case, nested / flat) are normalized
here and nowhere else.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Optional
from urllib.parse import parse_qs, urlsplit

from mcp_embed.models.context import DEFAULT_LANGUAGE, DEFAULT_PROTOCOL, DEFAULT_THEME, InvocationContext
from mcp_embed.models.events import TransportMode

logger = logging.getLogger(__name__)

STANDALONE_GRACE_S = 0.1
DEFAULT_INIT_TIMEOUT_S = 2.0

SOURCE_HOST = "host"
SOURCE_URL = "url"

URL_KEYS = {
    "customerId", "projectId", "userId", "resourceId", "theme", "language",
    "protocol", "mode", "username", "token",
}


def _first(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None and value != "":
            return value
    return None


def _as_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def normalize_context(data: dict[str, Any], mode: Optional[TransportMode] = None) -> InvocationContext:
    config = data.get("config")
    if not isinstance(config, dict):
        config = {}
    params = data.get("params")
    if not isinstance(params, dict):
        params = {}
    return InvocationContext(
        customer_id=_as_str(_first(data, "customerId", "customer_id")),
        project_id=_as_str(_first(data, "projectId", "project_id")),
        user_id=_as_str(_first(data, "userId", "user_id")),
        resource_id=_as_str(_first(data, "resourceId", "resource_id")),
        token=_as_str(_first(data, "token")),
        config=config,
        theme=str(_first(data, "theme") or config.get("theme") or DEFAULT_THEME),
        language=str(_first(data, "language") or DEFAULT_LANGUAGE),
        protocol=str(_first(data, "protocol") or DEFAULT_PROTOCOL),
        mode=mode,
        params=params,
    )


def _decode(value: str) -> Any:
    try:
        return json.loads(value)
    except ValueError:
        return value


def context_from_url(url: str, mode: Optional[TransportMode] = None) -> InvocationContext:
    query = {key: values[0] for key, values in parse_qs(urlsplit(url).query).items()}
    params: dict[str, Any] = {}
    if query.get("username"):
        params["username"] = query["username"]
    for key, value in query.items():
        if key not in URL_KEYS:
            params[key] = _decode(value)
    return InvocationContext(
        customer_id=query.get("customerId"),
        project_id=query.get("projectId"),
        user_id=query.get("userId"),
        resource_id=query.get("resourceId"),
        token=query.get("token"),
        theme=query.get("theme") or DEFAULT_THEME,
        language=query.get("language") or DEFAULT_LANGUAGE,
        protocol=query.get("protocol") or DEFAULT_PROTOCOL,
        mode=mode,
        params=params,
    )


class ContextResolver:
    """Races the host init against the URL fallback timer.

    The first offer() settles the future and wins; later offers are discarded.
    """

    def __init__(
        self,
        url: str,
        mode: TransportMode,
        on_resolved: Callable[[InvocationContext, str], None],
        *,
        init_timeout: float = DEFAULT_INIT_TIMEOUT_S,
        standalone_grace: float = STANDALONE_GRACE_S,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self._url = url
        self._mode = mode
        self._on_resolved = on_resolved
        self._loop = loop or asyncio.get_running_loop()
        self._resolved: asyncio.Future[InvocationContext] = self._loop.create_future()
        self._source: Optional[str] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self.delay = standalone_grace if mode is TransportMode.STANDALONE else init_timeout

    @property
    def resolved(self) -> "asyncio.Future[InvocationContext]":
        return self._resolved

    @property
    def source(self) -> Optional[str]:
        return self._source

    def start(self) -> None:
        """Arm the URL fallback unless the host already won."""
        if self._resolved.done() or self._timer is not None:
            return
        self._timer = self._loop.call_later(self.delay, self._fallback)

    def offer(self, context: InvocationContext, source: str) -> bool:
        if self._resolved.done():
            logger.debug("Discarding %s context: already resolved from %s", source, self._source)
            return False
        self._resolved.set_result(context)
        self._source = source
        self.cancel()
        self._on_resolved(context, source)
        return True

    def offer_host(self, data: dict[str, Any]) -> bool:
        return self.offer(normalize_context(data, self._mode), SOURCE_HOST)

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fallback(self) -> None:
        self._timer = None
        if self._resolved.done():
            return
        logger.debug("No init from host after %.1fs, using URL params", self.delay)
        self.offer(context_from_url(self._url, self._mode), SOURCE_URL)
