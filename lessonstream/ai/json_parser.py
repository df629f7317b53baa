"""Lenient recovery of JSON objects from raw LLM completions.

`recover_json` is total: any input yields a dict or None and nothing is raised.
Recovery runs in a fixed order and stops at the first pass that parses:

1. strip markdown code fences
2. strict parse of the whole text
3. isolate the first balanced ``{...}`` block (string and escape aware)
4. repair passes on the candidate: trailing commas, bare keys, quote styles,
   run-together values
5. when braces never balance, close open strings/containers once and retry
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```[a-zA-Z0-9_-]*")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_ADJACENT_OBJECTS_RE = re.compile(r"}\s*{")
_SMART_QUOTES = str.maketrans({"“": '"', "”": '"', "„": '"', "‘": "'", "’": "'"})

JsonDict = dict[str, Any]


def strip_json_fences(raw: str) -> str:
  """Drop markdown code fence markers while keeping their content."""
  return _FENCE_RE.sub("", raw).strip()


def recover_json(raw: Any) -> JsonDict | None:
  """Extract a JSON object from raw completion text, or return None."""
  if not isinstance(raw, str) or not raw.strip():
    return None

  text = strip_json_fences(raw)

  # Prefer strict parsing so valid JSON is preserved without mutation.
  parsed = _loads_object(text)
  if parsed is not None:
    return parsed

  candidate = _extract_json_block(text)
  balanced = candidate is not None
  if candidate is None:
    start = text.find("{")
    if start < 0:
      logger.debug("No JSON object found in completion (%d chars)", len(text))
      return None
    candidate = text[start:]
  else:
    parsed = _loads_object(candidate)
    if parsed is not None:
      return parsed

  repaired = _apply_repairs(candidate)
  if repaired is not None:
    return repaired

  if balanced:
    return None

  # Unbalanced output is usually a truncated completion; close it once.
  closed = _append_missing_closers(candidate)
  parsed = _loads_object(closed)
  if parsed is not None:
    return parsed
  repaired = _apply_repairs(closed)
  if repaired is None:
    logger.debug("JSON recovery exhausted for completion (%d chars)", len(text))
  return repaired


def _loads_object(text: str) -> JsonDict | None:
  try:
    value = json.loads(text)
  except (json.JSONDecodeError, RecursionError):
    return None
  return value if isinstance(value, dict) else None


def _apply_repairs(candidate: str) -> JsonDict | None:
  """Run the cumulative repair passes and parse after each one."""
  current = candidate
  passes: tuple[Callable[[str], str], ...] = (_strip_trailing_commas, _quote_unquoted_keys, _normalize_quotes, _separate_adjacent_objects, _insert_missing_commas)
  for repair in passes:
    current = repair(current)
    parsed = _loads_object(current)
    if parsed is not None:
      return parsed
  return None


def _extract_json_block(raw: str) -> str | None:
  """Locate the first balanced JSON object while honoring string escapes."""
  start_index: int | None = None
  depth = 0
  in_string = False
  escape = False

  for index, char in enumerate(raw):
    if start_index is None:
      if char == "{":
        start_index = index
        depth = 1
      continue

    if in_string:
      if escape:
        escape = False
      elif char == "\\":
        escape = True
      elif char == '"':
        in_string = False
      continue

    if char == '"':
      in_string = True
    elif char in "{[":
      depth += 1
    elif char in "}]":
      depth -= 1
      if depth == 0:
        return raw[start_index : index + 1]

  return None


def _strip_trailing_commas(raw: str) -> str:
  """Remove trailing commas before closing brackets."""
  return _TRAILING_COMMA_RE.sub(r"\1", raw)


def _separate_adjacent_objects(raw: str) -> str:
  """Join objects emitted back to back without a comma."""
  return _ADJACENT_OBJECTS_RE.sub("}, {", raw)


def _quote_unquoted_keys(raw: str) -> str:
  """Wrap bare identifier keys in double quotes outside of string literals."""
  output: list[str] = []
  in_string = False
  escape = False
  expecting_key = False
  index = 0

  while index < len(raw):
    char = raw[index]

    if in_string:
      output.append(char)
      if escape:
        escape = False
      elif char == "\\":
        escape = True
      elif char == '"':
        in_string = False
      index += 1
      continue

    if char == '"':
      in_string = True
    elif char in "{,":
      expecting_key = True
    elif char in "}:":
      expecting_key = False
    elif expecting_key and (char.isalpha() or char == "_"):
      start = index
      index += 1
      while index < len(raw) and (raw[index].isalnum() or raw[index] in "_-"):
        index += 1
      key = raw[start:index]
      probe = index
      while probe < len(raw) and raw[probe].isspace():
        probe += 1
      # Only identifiers directly followed by a colon are keys.
      if probe < len(raw) and raw[probe] == ":":
        output.append(f'"{key}"')
        expecting_key = False
      else:
        output.append(key)
      continue

    output.append(char)
    index += 1

  return "".join(output)


def _normalize_quotes(raw: str) -> str:
  """Convert typographic quotes and single-quoted literals into JSON strings."""
  text = raw.translate(_SMART_QUOTES)
  output: list[str] = []
  in_double = False
  escape = False
  last_structural = ""
  index = 0

  while index < len(text):
    char = text[index]

    if in_double:
      output.append(char)
      if escape:
        escape = False
      elif char == "\\":
        escape = True
      elif char == '"':
        in_double = False
      index += 1
      continue

    if char == '"':
      in_double = True
      output.append(char)
      index += 1
      continue

    # A single quote opens a literal only where a key or value may start.
    if char == "'" and last_structural in {"", "{", "[", ",", ":"}:
      end = index + 1
      buffer: list[str] = []
      while end < len(text) and text[end] != "'":
        if text[end] == "\\" and end + 1 < len(text):
          buffer.append(text[end + 1])
          end += 2
          continue
        buffer.append(text[end])
        end += 1
      if end < len(text):
        output.append(json.dumps("".join(buffer), ensure_ascii=False))
        last_structural = "'"
        index = end + 1
        continue

    if not char.isspace():
      last_structural = char
    output.append(char)
    index += 1

  return "".join(output)


def _insert_missing_commas(raw: str) -> str:
  """Insert commas between values that run together inside containers."""
  output: list[str] = []
  in_string = False
  in_literal = False
  escape = False
  stack: list[str] = []
  value_ended = False
  expecting_key = False

  for char in raw:
    if in_string:
      output.append(char)
      if escape:
        escape = False
      elif char == "\\":
        escape = True
      elif char == '"':
        in_string = False
        # A closed string is a finished value unless it was an object key.
        value_ended = not expecting_key
        expecting_key = False
      continue

    if in_literal and (char.isspace() or char in ',:"{}[]'):
      in_literal = False
      value_ended = True

    if char.isspace():
      output.append(char)
      continue

    if value_ended and stack and (char in '"{[-' or char.isdigit() or char in "tfn"):
      output.append(",")
      expecting_key = stack[-1] == "object"
      value_ended = False

    if char == '"':
      in_string = True
    elif char == "{":
      stack.append("object")
      expecting_key = True
      value_ended = False
    elif char == "[":
      stack.append("array")
      expecting_key = False
      value_ended = False
    elif char in "}]":
      if stack:
        stack.pop()
      value_ended = True
      expecting_key = False
    elif char == ",":
      value_ended = False
      expecting_key = bool(stack) and stack[-1] == "object"
    elif char == ":":
      value_ended = False
      expecting_key = False
    else:
      # Literal and number characters; the value ends at the next delimiter.
      if not in_literal:
        in_literal = True
        value_ended = False
      output.append(char)
      continue

    output.append(char)

  return "".join(output)


def _append_missing_closers(raw: str) -> str:
  """Close an unterminated string and any open containers, innermost first."""
  stack: list[str] = []
  in_string = False
  escape = False

  for char in raw:
    if in_string:
      if escape:
        escape = False
      elif char == "\\":
        escape = True
      elif char == '"':
        in_string = False
      continue
    if char == '"':
      in_string = True
    elif char == "{":
      stack.append("}")
    elif char == "[":
      stack.append("]")
    elif char in "}]" and stack and stack[-1] == char:
      stack.pop()

  closed = raw + ('"' if in_string else "")
  closed = closed.rstrip()
  # A dangling separator cannot be closed meaningfully.
  while closed and closed[-1] in ",:":
    closed = closed[:-1].rstrip()
  return closed + "".join(reversed(stack))
