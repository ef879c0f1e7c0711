from typing import Any, Optional

from pydantic import BaseModel, Field


class InboundWebhook(BaseModel):
    """What the business-process callback sent us, as handed to the worker."""

    query: dict[str, Any] = Field(default_factory=dict)
    body: dict[str, Any] = Field(default_factory=dict)
    request_id: Optional[str] = None
    ip: Optional[str] = None
    method: str = "POST"
    path: str = "/"
    content_type: Optional[str] = None
    headers: dict[str, str] = Field(default_factory=dict)

    def meta(self) -> dict[str, Any]:
        return {
            "requestId": self.request_id,
            "ip": self.ip,
            "method": self.method,
            "path": self.path,
            "contentType": self.content_type,
        }
