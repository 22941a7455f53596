"""KIS response envelope classification.

Every KIS REST reply shares one envelope::

    {"rt_cd": "0", "msg_cd": "...", "msg1": "...", "output": {...}}
    {"rt_cd": "0", ..., "output1": [...], "output2": {...} | [...]}

`rt_cd == "0"` is the only success marker. Any other value, including a missing
one, is a business rejection whose msg_cd/msg1 are carried verbatim. A body that
cannot be read as a JSON object is malformed, which is a contract break with the
venue rather than a rejected instruction.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from kis_gateway.core.errors import BusinessFailure, MalformedResponse


@dataclass(frozen=True)
class Success:
    output: Any = None
    output1: Any = None
    output2: Any = None
    message_code: str = ""
    message: str = ""
    body: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)


@dataclass(frozen=True)
class BusinessRejection:
    code: str
    message: str


@dataclass(frozen=True)
class Malformed:
    reason: str


Outcome = Union[Success, BusinessRejection, Malformed]


def parse_json_object(raw: Union[bytes, str, None]) -> Optional[Dict[str, Any]]:
    """Decode `raw` into a dict, or None when it is empty / not JSON / not an object."""
    if raw is None:
        return None
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = bytes(raw).decode("utf-8")
        except UnicodeDecodeError:
            return None
    if not raw.strip():
        return None
    try:
        obj = json.loads(raw)
    except ValueError:
        return None
    return obj if isinstance(obj, dict) else None


def classify(raw: Union[bytes, str, None]) -> Outcome:
    obj = parse_json_object(raw)
    if obj is None:
        return Malformed(reason=_describe(raw))

    msg_cd = _text(obj.get("msg_cd"))
    msg1 = _text(obj.get("msg1"))
    if obj.get("rt_cd") != "0":
        return BusinessRejection(code=msg_cd, message=msg1)

    return Success(
        output=obj.get("output"),
        output1=obj.get("output1"),
        output2=obj.get("output2"),
        message_code=msg_cd,
        message=msg1,
        body=obj,
    )


def unwrap(outcome: Outcome) -> Success:
    if isinstance(outcome, Success):
        return outcome
    if isinstance(outcome, BusinessRejection):
        raise BusinessFailure(outcome.code, outcome.message)
    raise MalformedResponse(outcome.reason)


def _text(v: Any) -> str:
    return "" if v is None else str(v)


def _describe(raw: Union[bytes, str, None]) -> str:
    if raw is None or len(raw) == 0:
        return "empty response body"
    snippet = raw[:200]
    if isinstance(snippet, (bytes, bytearray)):
        snippet = bytes(snippet).decode("utf-8", errors="replace")
    return f"response is not a JSON object: {snippet!r}"
