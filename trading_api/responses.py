"""
Exact-decimal JSON for the ledger API.

Amounts cross the wire as JSON numbers written from their decimal
text (``10000.00``, ``123456789012.12345678``). Neither direction
passes through float:
- DecimalJSONResponse renders Decimal values as number literals
- DecimalRoute parses request bodies with ``parse_float=Decimal``

Clients that need the exact value must parse with a decimal-aware
reader, e.g. ``json.loads(text, parse_float=Decimal)``.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute


def encode_json(value: Any) -> str:
    """
    Serialize ``value`` with Decimals as JSON number literals.

    Raises:
        ValueError: NaN or infinite Decimal
    """
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValueError(f"{value} has no JSON number form")
        return format(value, "f")
    if isinstance(value, dict):
        members = (f"{json.dumps(str(key))}:{encode_json(item)}" for key, item in value.items())
        return "{" + ",".join(members) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(encode_json(item) for item in value) + "]"
    if isinstance(value, (datetime, date)):
        return json.dumps(value.isoformat())
    if isinstance(value, Enum):
        return encode_json(value.value)
    return json.dumps(value, ensure_ascii=False, allow_nan=False)


class DecimalJSONResponse(JSONResponse):
    media_type = "application/json"

    def render(self, content: Any) -> bytes:
        return encode_json(content).encode("utf-8")


class DecimalRequest(Request):
    async def json(self) -> Any:
        if not hasattr(self, "_json"):
            self._json = json.loads(await self.body(), parse_float=Decimal)
        return self._json


class DecimalRoute(APIRoute):
    """Route whose JSON body numbers arrive as Decimal."""

    def get_route_handler(self) -> Callable:
        original_route_handler = super().get_route_handler()

        async def decimal_route_handler(request: Request) -> Response:
            request = DecimalRequest(request.scope, request.receive)
            return await original_route_handler(request)

        return decimal_route_handler


__all__ = ["DecimalJSONResponse", "DecimalRoute", "encode_json"]
