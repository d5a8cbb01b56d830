"""
SessionIssuer models — /mcp/v1/session/init and /mcp/v1/token/refresh.
"""

from typing import Any, Optional
from pydantic import BaseModel


class SessionInfo(BaseModel):
    id: str
    expires_at: Optional[str] = None
    customer_id: Optional[str] = None
    project_id: Optional[str] = None


class AppInfo(BaseModel):
    id: str
    name: str = ""
    endpoint: str
    token: str
    token_expires_at: Optional[str] = None
    response_type: str = "layer"  # "layer" | "inline"
    keywords: Optional[dict[str, Any]] = None


class SessionInit(BaseModel):
    status: str
    session: SessionInfo
    apps: list[AppInfo] = []

    def find_app(self, name_or_id: str) -> Optional[AppInfo]:
        for app in self.apps:
            if app.id == name_or_id or app.name == name_or_id:
                return app
        return None


class TokenRefresh(BaseModel):
    status: str
    token: str
    expires_at: Optional[str] = None
