"""Find and finish the open-lines chat attached to a CRM deal."""

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from relay.services.bitrix import BitrixError

logger = logging.getLogger(__name__)

GET_LAST_CHAT_ID = "imopenlines.crm.chat.getLastId"
FINISH_CHAT = "imopenlines.operator.another.finish"

NOT_FOUND_CODES = {"NOT_FOUND", "ERROR_NOT_FOUND", "CHAT_NOT_FOUND", "ENTITY_NOT_FOUND"}
NOT_FOUND_MESSAGE = re.compile(r"not\s+found|не\s+найден", re.IGNORECASE)


class RemoteCaller(Protocol):
    def call(self, method: str, params: Optional[dict[str, Any]] = None) -> Any: ...


@dataclass(frozen=True)
class ChatLookup:
    found: bool
    chat_id: Optional[str] = None


@dataclass(frozen=True)
class ChatClosure:
    found: bool
    finished: bool
    chat_id: Optional[str] = None


def is_not_found(error: BitrixError) -> bool:
    # Codes first; older portals only put it in the description text.
    if error.code and error.code.upper() in NOT_FOUND_CODES:
        return True
    return bool(NOT_FOUND_MESSAGE.search(error.message or ""))


def positive_id(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(str(value).strip())
    except ValueError:
        return None
    return str(number) if number > 0 else None


def resolve_last_chat(client: RemoteCaller, deal_id: str) -> ChatLookup:
    try:
        result = client.call(
            GET_LAST_CHAT_ID, {"CRM_ENTITY_TYPE": "DEAL", "CRM_ENTITY": deal_id}
        )
    except BitrixError as e:
        if is_not_found(e):
            logger.info(f"No open-lines chat for deal {deal_id}: {e.message}")
            return ChatLookup(found=False)
        raise

    chat_id = positive_id(result)
    if chat_id is None:
        return ChatLookup(found=False)
    return ChatLookup(found=True, chat_id=chat_id)


def close_deal_chat(client: RemoteCaller, deal_id: str) -> ChatClosure:
    lookup = resolve_last_chat(client, deal_id)
    if not lookup.found:
        return ChatClosure(found=False, finished=False)

    client.call(FINISH_CHAT, {"CHAT_ID": lookup.chat_id})
    logger.info(f"Finished chat {lookup.chat_id} for deal {deal_id}")
    return ChatClosure(found=True, finished=True, chat_id=lookup.chat_id)
