"""
SessionIssuer client — session init and per-app token refresh.

Any failure here is an UpstreamSessionError and must stop the launch before
a callee is embedded.
"""

from typing import Any, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from mcp_embed.errors import UpstreamSessionError
from mcp_embed.models.session import SessionInit, TokenRefresh
from mcp_embed.transport.http import HttpClient

SESSION_INIT_PATH = "/mcp/v1/session/init"
TOKEN_REFRESH_PATH = "/mcp/v1/token/refresh"

ModelT = TypeVar("ModelT", bound=BaseModel)


class SessionIssuer:
    def __init__(self, http: HttpClient):
        self._http = http

    async def init_session(self, language: Optional[str] = None) -> SessionInit:
        """GET /mcp/v1/session/init — session plus the apps and their scoped tokens."""
        params = {"language": language} if language else None
        try:
            data = await self._http.get(SESSION_INIT_PATH, params=params)
        except httpx.HTTPError as e:
            raise UpstreamSessionError(f"Session init failed: {e}")
        return self._parse(SessionInit, data)

    async def refresh_token(self, app_id: str) -> TokenRefresh:
        """POST /mcp/v1/token/refresh"""
        try:
            data = await self._http.post(TOKEN_REFRESH_PATH, {"app_id": app_id})
        except httpx.HTTPError as e:
            raise UpstreamSessionError(f"Token refresh failed: {e}")
        return self._parse(TokenRefresh, data)

    async def close(self) -> None:
        await self._http.close()

    @staticmethod
    def _parse(model: type[ModelT], data: Any) -> ModelT:
        if not isinstance(data, dict) or data.get("status") != "success":
            error = data.get("error") if isinstance(data, dict) else None
            message = error.get("message") if isinstance(error, dict) else None
            raise UpstreamSessionError(
                message or f"Unexpected response: {str(data)[:200]}",
                details=data if isinstance(data, dict) else None,
            )
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise UpstreamSessionError(f"Malformed {model.__name__} response: {e.error_count()} error(s)")
