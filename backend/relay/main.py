import asyncio
import json
import logging
import platform
from typing import Any, Callable

from fastapi import Depends, FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool
from relay.core.config import get_settings
from relay.core.logging import (
    configure_logging,
    install_asyncio_handler,
    install_exception_hooks,
)
from relay.middleware.body_size import BodySizeLimitMiddleware
from relay.schemas.ingest import InboundWebhook
from relay.services.extract import extract_deal_id
from relay.services.forms import decode_form
from relay.tasks import process_webhook

settings = get_settings()
configure_logging(settings)

app = FastAPI(
    title="Bitrix BP Chat Relay",
    description="Closes the open-lines chat of a deal on a business-process callback",
    version="1.0.0",
    docs_url=None,
    redoc_url=None,
)

app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_body_bytes)

logger = logging.getLogger(__name__)

LOGGED_HEADERS = (
    "user-agent",
    "x-forwarded-for",
    "x-real-ip",
    "x-forwarded-proto",
    "x-forwarded-host",
    "host",
)


@app.on_event("startup")
async def startup():
    install_exception_hooks()
    install_asyncio_handler(asyncio.get_running_loop())
    logger.info(
        "Server started",
        extra={"meta": {"port": settings.port, "python": platform.python_version()}},
    )


@app.on_event("shutdown")
async def shutdown():
    logger.warning("Shutdown signal received, shutting down...")


# ---------- dependency ----------
def enqueue_webhook(payload: dict) -> None:
    result = process_webhook.delay(payload)
    logger.debug(f"Task queued with ID {getattr(result, 'id', None)}")


def get_enqueue() -> Callable[[dict], None]:
    return enqueue_webhook


# ---------- request helpers ----------
def get_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else None


def get_request_id(request: Request) -> str | None:
    return request.headers.get("x-request-id") or request.headers.get(
        "x-railway-request-id"
    )


async def read_body(request: Request) -> dict[str, Any]:
    content_type = request.headers.get("content-type", "")
    try:
        if "application/json" in content_type:
            raw = await request.body()
            data = json.loads(raw) if raw else {}
            return data if isinstance(data, dict) else {}
        if "application/x-www-form-urlencoded" in content_type:
            form = await request.form()
            return decode_form(
                (k, v) for k, v in form.multi_items() if isinstance(v, str)
            )
    except (ValueError, UnicodeDecodeError, RecursionError) as e:
        logger.warning(f"Unparseable webhook body: {e}")
    return {}


# ---------- health ----------
@app.get("/", response_class=PlainTextResponse, include_in_schema=False)
@app.get("/healthz", response_class=PlainTextResponse, include_in_schema=False)
async def health():
    return "OK"


# ---------- business-process callback ----------
@app.post("/", response_class=PlainTextResponse)
async def bp_webhook(
    request: Request,
    enqueue: Callable[[dict], None] = Depends(get_enqueue),
):
    query = decode_form(request.query_params.multi_items())
    body = await read_body(request)
    inbound = InboundWebhook(
        query=query,
        body=body,
        request_id=get_request_id(request),
        ip=get_ip(request),
        method=request.method,
        path=request.url.path + (f"?{request.url.query}" if request.url.query else ""),
        content_type=request.headers.get("content-type"),
        headers={k: v for k, v in request.headers.items() if k in LOGGED_HEADERS},
    )

    logger.info(
        "BP webhook received",
        extra={
            "meta": {**inbound.meta(), "dealId": extract_deal_id(query, body)},
            "details": {"query": query, "body": body, "headers": inbound.headers},
        },
    )

    # The caller only needs the ack; processing happens on the worker.
    try:
        await run_in_threadpool(enqueue, inbound.model_dump(mode="json"))
    except Exception as e:
        logger.error(
            f"Failed to queue BP webhook: {e}",
            exc_info=True,
            extra={"meta": inbound.meta()},
        )

    return "OK"


def serve() -> None:
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
