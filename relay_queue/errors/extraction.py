"""Normalization of arbitrary failures into a small set of known shapes.

Callers hand the classifier whatever they caught: exceptions raised by the
relayer client, raw ``httpx`` errors, plain strings, or decoded client-style
error payloads (``{"status": 503}``, ``{"response": {"data": {...}}}``).
``extract_failure`` folds all of them into a ``FailureShape`` so the rest of
the classifier never has to probe attributes.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx

from ..core.exceptions import RelayerHTTPError
from .domain import FailureShape, HttpFailure, PlainFailure, TextFailure

_STATUS_KEYS = ("status", "statusCode", "status_code")
_BODY_KEYS = ("data", "body")


def _as_status(value: object) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _as_text(value: object) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _lookup(source: object, key: str) -> Any:
    if isinstance(source, Mapping):
        return source.get(key)
    return getattr(source, key, None)


def _first_status(source: object) -> int | None:
    for key in _STATUS_KEYS:
        status = _as_status(_lookup(source, key))
        if status is not None:
            return status
    return None


def _body_fields(body: object) -> tuple[str | None, str | None]:
    if not isinstance(body, Mapping):
        return None, None
    return _as_text(body.get("message")), _as_text(body.get("error"))


def _response_body(response: object) -> object:
    for key in _BODY_KEYS:
        body = _lookup(response, key)
        if body is not None:
            return body
    return None


def _from_httpx(error: httpx.HTTPStatusError) -> HttpFailure:
    try:
        body: object = error.response.json()
    except ValueError:
        body = None
    body_message, body_error = _body_fields(body)
    return HttpFailure(
        status=error.response.status_code,
        message=str(error),
        body_message=body_message,
        body_error=body_error,
    )


def _from_client_shape(source: object, message: str) -> FailureShape:
    """Duck-typed client errors: top-level status or a ``response`` member."""
    response = _lookup(source, "response")
    status = _first_status(source)
    if status is None and response is not None:
        status = _first_status(response)

    if status is None and response is None:
        return PlainFailure(message)

    body_message, body_error = _body_fields(_response_body(response)) if response is not None else (None, None)
    return HttpFailure(status=status, message=message, body_message=body_message, body_error=body_error)


def extract_failure(error: object) -> FailureShape:
    match error:
        case str():
            return TextFailure(error)
        case RelayerHTTPError():
            body_message, body_error = _body_fields(error.body)
            return HttpFailure(
                status=error.status_code,
                message=str(error),
                body_message=body_message,
                body_error=body_error,
            )
        case httpx.HTTPStatusError():
            return _from_httpx(error)
        case Mapping():
            message = _as_text(error.get("message")) or ""
            shape = _from_client_shape(error, message)
            if isinstance(shape, PlainFailure) and not message:
                return TextFailure(str(dict(error)))
            return shape
        case BaseException():
            # Exceptions like TimeoutError() carry no message; their type name still classifies
            message = str(error) or type(error).__name__
            return _from_client_shape(error, message)
        case _:
            return TextFailure(str(error))


def failure_message(shape: FailureShape) -> str:
    """Nested body ``message`` beats body ``error`` beats the top-level message."""
    match shape:
        case TextFailure(text=text):
            return text
        case PlainFailure(message=message):
            return message
        case HttpFailure(message=message, body_message=body_message, body_error=body_error):
            return body_message or body_error or message


def failure_status(shape: FailureShape) -> int | None:
    match shape:
        case HttpFailure(status=status):
            return status
        case _:
            return None
