"""
REST HTTP client for the SessionIssuer.
"""

from typing import Any, Optional

import httpx

from mcp_embed.errors import UpstreamSessionError

DEFAULT_BASE_URL = "https://aimcp.replit.app"
USER_AGENT = "mcp-embed/0.1.0"


class HttpClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def set_token(self, token: str) -> None:
        self._token = token

    def _auth_headers(self, authenticated: bool) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if authenticated and self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    @staticmethod
    def _decode(resp: httpx.Response) -> Any:
        if resp.status_code >= 400:
            raise UpstreamSessionError(
                f"HTTP {resp.status_code}: {resp.text[:200]}",
                code="http_error",
                details={"status_code": resp.status_code},
            )
        try:
            return resp.json()
        except ValueError:
            raise UpstreamSessionError(f"Invalid JSON response: {resp.text[:200]}", code="invalid_response")

    async def get(self, path: str, params: Optional[dict[str, str]] = None, authenticated: bool = True) -> Any:
        resp = await self._client.get(path, params=params, headers=self._auth_headers(authenticated))
        return self._decode(resp)

    async def post(self, path: str, body: Optional[dict[str, Any]] = None, authenticated: bool = True) -> Any:
        resp = await self._client.post(path, json=body, headers=self._auth_headers(authenticated))
        return self._decode(resp)

    async def close(self) -> None:
        await self._client.aclose()
