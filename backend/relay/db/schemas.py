from typing import Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict


class TenantRecord(BaseModel):
    """Read-only snapshot of a tenant row, detached from the session."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    name: str
    member_id: str
    webhook_url: Optional[str] = None
    enabled: bool = True

    @property
    def has_valid_webhook_url(self) -> bool:
        return is_absolute_http_url(self.webhook_url)


class TenantUpsert(BaseModel):
    name: str
    member_id: str
    webhook_url: Optional[str] = None
    enabled: bool = True


def is_absolute_http_url(value: Optional[str]) -> bool:
    if not value:
        return False
    parts = urlsplit(value.strip())
    return parts.scheme in ("http", "https") and bool(parts.netloc)
