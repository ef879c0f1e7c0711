import logging
from functools import partial

from pydantic import ValidationError
from relay.celery_app import celery
from relay.core.config import get_settings
from relay.db.crud import SqlTenantDirectory
from relay.db.session import SessionLocal
from relay.schemas.ingest import InboundWebhook
from relay.services.bitrix import BitrixClient
from relay.services.pipeline import (
    CLOSED,
    CONFIG_ERROR,
    FAILED,
    Outcome,
    process_webhook as run_pipeline,
)

logger = logging.getLogger(__name__)

MESSAGES = {
    "deal_id_missing": "BP webhook ignored (deal id not found)",
    "member_id_missing": "BP webhook ignored (auth.member_id missing)",
    "tenant_not_found": "BP webhook ignored (tenant not found)",
    "tenant_disabled": "BP webhook ignored (tenant disabled)",
    "webhook_url_missing": "Tenant has no webhook URL configured",
    "webhook_url_invalid": "Tenant webhook URL is not an absolute http(s) URL",
    "chat_not_found": "No open-lines chat for deal, nothing to close",
    "chat_closed": "OpenLines chat closed",
    "unexpected_error": "BP webhook handler failed",
}


def log_outcome(outcome: Outcome, inbound: InboundWebhook) -> None:
    title = MESSAGES.get(outcome.reason, outcome.reason)
    meta = {"requestId": inbound.request_id, "ip": inbound.ip, **outcome.meta()}

    if outcome.status == CLOSED or outcome.reason == "chat_not_found":
        logger.info(title, extra={"meta": meta})
    elif outcome.status == CONFIG_ERROR:
        logger.error(title, extra={"meta": meta})
    elif outcome.status == FAILED:
        logger.error(
            title,
            exc_info=outcome.error,
            extra={
                "meta": meta,
                "details": {"query": inbound.query, "body": inbound.body},
            },
        )
    else:
        logger.warning(title, extra={"meta": meta})


@celery.task(bind=True, max_retries=0)
def process_webhook(self, payload: dict, session=None) -> dict:
    try:
        inbound = InboundWebhook.model_validate(payload)
    except ValidationError:
        logger.error(
            "BP webhook payload rejected",
            exc_info=True,
            extra={"meta": {"taskId": self.request.id}, "details": {"payload": payload}},
        )
        return {"status": FAILED, "reason": "invalid_payload"}

    logger.info(
        "Processing BP webhook",
        extra={"meta": {"taskId": self.request.id, **inbound.meta()}},
    )

    settings = get_settings()
    outcome = run_pipeline(
        inbound,
        SqlTenantDirectory(SessionLocal, session=session),
        partial(BitrixClient, timeout_ms=settings.bitrix_timeout_ms),
    )
    log_outcome(outcome, inbound)
    return outcome.meta()
