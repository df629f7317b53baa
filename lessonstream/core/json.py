"""JSON responses rendered with msgspec."""

from __future__ import annotations

from typing import Any

import msgspec
from fastapi.responses import JSONResponse

_ENCODER = msgspec.json.Encoder()


def to_builtins(value: Any) -> Any:
  """Convert Structs and nested containers into plain JSON-ready values."""
  return msgspec.to_builtins(value, str_keys=True)


def dumps(value: Any) -> str:
  """Encode a value (Structs included) as a compact JSON string."""
  return _ENCODER.encode(value).decode("utf-8")


class StructJSONResponse(JSONResponse):
  """JSONResponse that accepts msgspec Structs and keeps non-ASCII text readable."""

  def render(self, content: Any) -> bytes:
    return _ENCODER.encode(content)
