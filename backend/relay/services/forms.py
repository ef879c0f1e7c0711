"""Decode PHP-style bracketed form fields into nested data.

Bitrix posts business-process callbacks as
``document_id[0]=crm&document_id[2]=DEAL_1&auth[member_id]=abc``.
"""

import re
from typing import Any, Iterable

KEY_PART = re.compile(r"\[([^\[\]]*)\]")


def split_key(key: str) -> list[str]:
    head, bracket, rest = key.partition("[")
    if not bracket or not head:
        return [key]
    tail = "[" + rest
    parts = KEY_PART.findall(tail)
    # Anything left over after the bracket groups is not a nested key.
    if "".join(f"[{p}]" for p in parts) != tail:
        return [key]
    return [head, *parts]


def decode_form(pairs: Iterable[tuple[str, str]]) -> dict[str, Any]:
    root: dict[str, Any] = {}
    for key, value in pairs:
        path = split_key(key)
        node = root
        for i, part in enumerate(path):
            last = i == len(path) - 1
            if part == "":
                part = str(_next_index(node))
            if last:
                node[part] = value
                break
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
    return _listify(root)


def _next_index(node: dict[str, Any]) -> int:
    indexes = [int(k) for k in node if k.isdecimal()]
    return max(indexes) + 1 if indexes else 0


def _listify(node: Any) -> Any:
    if not isinstance(node, dict):
        return node
    converted = {k: _listify(v) for k, v in node.items()}
    if converted and all(k.isdecimal() and k == str(int(k)) for k in converted):
        indexes = sorted(int(k) for k in converted)
        if indexes == list(range(len(indexes))):
            return [converted[str(i)] for i in indexes]
    return converted
