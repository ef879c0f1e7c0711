"""Processing of one business-process callback.

Steps run strictly in order: deal id, member id, tenant, chat close. Each
one either yields the value the next step needs or ends processing with an
``Outcome``. Nothing here logs or touches the transport; the caller decides
what to do with the outcome.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol

from relay.db.schemas import TenantRecord
from relay.schemas.ingest import InboundWebhook
from relay.services.chats import RemoteCaller, close_deal_chat
from relay.services.extract import extract_deal_id, extract_member_id

CLOSED = "closed"
SKIPPED = "skipped"
CONFIG_ERROR = "config_error"
FAILED = "failed"


class TenantDirectory(Protocol):
    def find_by_member_id(self, member_id: str) -> Optional[TenantRecord]: ...


ClientFactory = Callable[[str], RemoteCaller]


@dataclass
class Outcome:
    status: str
    reason: str
    deal_id: Optional[str] = None
    member_id: Optional[str] = None
    tenant_id: Optional[int] = None
    chat_id: Optional[str] = None
    found: bool = False
    finished: bool = False
    error: Optional[BaseException] = field(default=None, repr=False)

    @property
    def ok(self) -> bool:
        return self.status in (CLOSED, SKIPPED)

    def meta(self) -> dict[str, Any]:
        meta = {
            "status": self.status,
            "reason": self.reason,
            "dealId": self.deal_id,
            "memberId": self.member_id,
            "tenantId": self.tenant_id,
            "chatId": self.chat_id,
            "found": self.found,
            "finished": self.finished,
        }
        if self.error is not None:
            meta["error"] = str(self.error)
        return meta


def process_webhook(
    inbound: InboundWebhook,
    directory: TenantDirectory,
    client_factory: ClientFactory,
) -> Outcome:
    outcome = Outcome(status=FAILED, reason="unexpected_error")
    try:
        return _run(inbound, directory, client_factory, outcome)
    except Exception as exc:
        outcome.status = FAILED
        outcome.reason = "unexpected_error"
        outcome.error = exc
        return outcome


def _run(
    inbound: InboundWebhook,
    directory: TenantDirectory,
    client_factory: ClientFactory,
    outcome: Outcome,
) -> Outcome:
    outcome.deal_id = extract_deal_id(inbound.query, inbound.body)
    if outcome.deal_id is None:
        return _stop(outcome, SKIPPED, "deal_id_missing")

    outcome.member_id = extract_member_id(inbound.body)
    if outcome.member_id is None:
        return _stop(outcome, SKIPPED, "member_id_missing")

    tenant = directory.find_by_member_id(outcome.member_id)
    if tenant is None:
        return _stop(outcome, SKIPPED, "tenant_not_found")
    outcome.tenant_id = tenant.id
    if not tenant.enabled:
        return _stop(outcome, SKIPPED, "tenant_disabled")
    if not tenant.webhook_url:
        return _stop(outcome, CONFIG_ERROR, "webhook_url_missing")
    if not tenant.has_valid_webhook_url:
        return _stop(outcome, CONFIG_ERROR, "webhook_url_invalid")

    closure = close_deal_chat(client_factory(tenant.webhook_url), outcome.deal_id)
    outcome.found = closure.found
    outcome.finished = closure.finished
    outcome.chat_id = closure.chat_id
    if not closure.found:
        return _stop(outcome, SKIPPED, "chat_not_found")
    return _stop(outcome, CLOSED, "chat_closed")


def _stop(outcome: Outcome, status: str, reason: str) -> Outcome:
    outcome.status = status
    outcome.reason = reason
    return outcome
