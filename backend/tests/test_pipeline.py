from unittest.mock import MagicMock

import pytest
from conftest import FakeBitrix, FakeDirectory, WEBHOOK_URL, make_payload, make_tenant_record
from relay.schemas.ingest import InboundWebhook
from relay.services.bitrix import BitrixError, BitrixTimeoutError
from relay.services.chats import FINISH_CHAT, GET_LAST_CHAT_ID
from relay.services.pipeline import CLOSED, CONFIG_ERROR, FAILED, SKIPPED, process_webhook


def _inbound(**kwargs) -> InboundWebhook:
    return InboundWebhook.model_validate(make_payload(**kwargs))


def _factory(client):
    factory = MagicMock(return_value=client)
    return factory


def test_closes_chat_end_to_end():
    client = FakeBitrix({GET_LAST_CHAT_ID: "99", FINISH_CHAT: True})
    factory = _factory(client)

    outcome = process_webhook(_inbound(), FakeDirectory(make_tenant_record()), factory)

    assert outcome.status == CLOSED
    assert outcome.found is True
    assert outcome.finished is True
    assert outcome.chat_id == "99"
    assert outcome.deal_id == "42"
    assert outcome.member_id == "mem1"
    assert outcome.error is None
    factory.assert_called_once_with(WEBHOOK_URL)
    assert client.calls[-1] == (FINISH_CHAT, {"CHAT_ID": "99"})


def test_missing_deal_id_stops_before_lookup():
    directory = FakeDirectory(make_tenant_record())
    factory = _factory(FakeBitrix())

    outcome = process_webhook(
        _inbound(body={"auth": {"member_id": "mem1"}}), directory, factory
    )

    assert (outcome.status, outcome.reason) == (SKIPPED, "deal_id_missing")
    assert directory.lookups == []
    factory.assert_not_called()


def test_missing_member_id():
    directory = FakeDirectory(make_tenant_record())

    outcome = process_webhook(
        _inbound(query={"deal_id": "5"}, body={}), directory, _factory(FakeBitrix())
    )

    assert (outcome.status, outcome.reason) == (SKIPPED, "member_id_missing")
    assert outcome.deal_id == "5"
    assert directory.lookups == []


def test_unknown_tenant_never_calls_bitrix():
    factory = _factory(FakeBitrix())

    outcome = process_webhook(_inbound(), FakeDirectory(), factory)

    assert (outcome.status, outcome.reason) == (SKIPPED, "tenant_not_found")
    factory.assert_not_called()


def test_disabled_tenant():
    factory = _factory(FakeBitrix())
    directory = FakeDirectory(make_tenant_record(enabled=False))

    outcome = process_webhook(_inbound(), directory, factory)

    assert (outcome.status, outcome.reason) == (SKIPPED, "tenant_disabled")
    assert outcome.tenant_id == 1
    factory.assert_not_called()


@pytest.mark.parametrize(
    "url, reason",
    [
        (None, "webhook_url_missing"),
        ("", "webhook_url_missing"),
        ("portal.bitrix24.ru/rest/1/x", "webhook_url_invalid"),
        ("ftp://portal.bitrix24.ru/rest/1/x", "webhook_url_invalid"),
    ],
)
def test_webhook_url_problems_are_config_errors(url, reason):
    factory = _factory(FakeBitrix())
    directory = FakeDirectory(make_tenant_record(webhook_url=url))

    outcome = process_webhook(_inbound(), directory, factory)

    assert (outcome.status, outcome.reason) == (CONFIG_ERROR, reason)
    assert not outcome.ok
    factory.assert_not_called()


def test_no_chat_is_a_benign_skip():
    client = FakeBitrix({GET_LAST_CHAT_ID: BitrixError(GET_LAST_CHAT_ID, "Entity not found")})

    outcome = process_webhook(
        _inbound(), FakeDirectory(make_tenant_record()), _factory(client)
    )

    assert (outcome.status, outcome.reason) == (SKIPPED, "chat_not_found")
    assert outcome.found is False
    assert outcome.ok


def test_remote_failure_is_captured():
    error = BitrixTimeoutError(GET_LAST_CHAT_ID, "timed out after 8000 ms")
    client = FakeBitrix({GET_LAST_CHAT_ID: error})

    outcome = process_webhook(
        _inbound(), FakeDirectory(make_tenant_record()), _factory(client)
    )

    assert outcome.status == FAILED
    assert outcome.error is error
    assert outcome.deal_id == "42"
    assert outcome.meta()["error"] == str(error)


def test_directory_failure_is_captured():
    directory = MagicMock()
    directory.find_by_member_id.side_effect = RuntimeError("db down")

    outcome = process_webhook(_inbound(), directory, _factory(FakeBitrix()))

    assert outcome.status == FAILED
    assert isinstance(outcome.error, RuntimeError)
