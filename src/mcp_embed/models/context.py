"""
Invocation context — what the callee knows about who launched it.
"""

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field

from mcp_embed.models.events import TransportMode

DEFAULT_THEME = "dark"
DEFAULT_LANGUAGE = "tr"
DEFAULT_PROTOCOL = "standard"


class InvocationContext(BaseModel):
    """Read-only for business logic; a refresh produces a new instance."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    customer_id: Optional[str] = Field(default=None, alias="customerId")
    project_id: Optional[str] = Field(default=None, alias="projectId")
    user_id: Optional[str] = Field(default=None, alias="userId")
    resource_id: Optional[str] = Field(default=None, alias="resourceId")
    token: Optional[str] = None
    config: dict[str, Any] = Field(default_factory=dict)
    theme: str = DEFAULT_THEME
    language: str = DEFAULT_LANGUAGE
    protocol: str = DEFAULT_PROTOCOL
    mode: Optional[TransportMode] = None
    params: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
