"""Pull identifiers out of a Bitrix business-process callback."""

import re
from typing import Any, Mapping, Optional

DIGITS = re.compile(r"[0-9]+")
DEAL_DOCUMENT = re.compile(r"DEAL_([0-9]+)")


def extract_deal_id(query: Mapping[str, Any], body: Mapping[str, Any]) -> Optional[str]:
    """Deal id from ``?deal_id=475509`` or from
    ``document_id = ["crm", "CCrmDocumentDeal", "DEAL_475509"]``.
    """
    q = query.get("deal_id") if query else None
    if isinstance(q, (list, tuple)):
        q = q[0] if q else None
    if q is not None and DIGITS.fullmatch(str(q)):
        return str(q)

    doc = body.get("document_id") if body else None
    if isinstance(doc, (list, tuple)) and len(doc) > 2 and isinstance(doc[2], str):
        m = DEAL_DOCUMENT.search(doc[2])
        if m:
            return m.group(1)

    return None


def extract_member_id(body: Mapping[str, Any]) -> Optional[str]:
    auth = body.get("auth") if body else None
    if not isinstance(auth, Mapping):
        return None
    member_id = auth.get("member_id")
    if member_id is None or isinstance(member_id, (dict, list, bool)):
        return None
    member_id = str(member_id).strip()
    return member_id or None
