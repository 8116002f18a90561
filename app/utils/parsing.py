"""Tolerant decoding of JSON-shaped model replies."""
from __future__ import annotations

import json
from typing import Any, Callable, TypeVar

from loguru import logger

from app.utils.exceptions import MalformedModelOutput

T = TypeVar("T")


def decode_json_object(content: str) -> dict[str, Any]:
    """Parse a model reply into a JSON object.

    The full reply is tried first. When that fails, the substring between the
    first ``{`` and the last ``}`` is tried, which recovers replies wrapped in
    prose or code fences. Anything else raises :class:`MalformedModelOutput`.
    """

    text = (content or "").strip()
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end <= start:
            raise MalformedModelOutput("Reply does not contain a JSON object", raw=text[:500])
        try:
            payload = json.loads(text[start : end + 1])
        except json.JSONDecodeError as exc:
            raise MalformedModelOutput(f"Embedded JSON is invalid: {exc}", raw=text[:500]) from exc

    if not isinstance(payload, dict):
        raise MalformedModelOutput("Reply JSON is not an object", raw=text[:500])
    return payload


def tolerant_decode(
    content: str,
    convert: Callable[[dict[str, Any]], T],
    default: T,
    *,
    source: str = "model",
) -> T:
    """Decode ``content`` and convert it, falling back to ``default``.

    ``convert`` receives the decoded object and may raise ``KeyError``,
    ``TypeError`` or ``ValueError`` (or :class:`MalformedModelOutput`) when
    the shape is wrong; every such failure resolves to ``default``.
    """

    try:
        payload = decode_json_object(content)
        return convert(payload)
    except MalformedModelOutput as exc:
        logger.warning("Malformed model output", source=source, reason=exc.message, raw=exc.raw[:200])
    except (KeyError, TypeError, ValueError) as exc:
        logger.warning("Unexpected model output shape", source=source, error=str(exc))
    return default


def first_line(content: str) -> str:
    """Return the first line of a reply, stripped."""

    lines = (content or "").splitlines()
    return lines[0].strip() if lines else ""


__all__ = ["decode_json_object", "tolerant_decode", "first_line"]
