from __future__ import annotations

import contextvars
import json
import re
from dataclasses import dataclass, field
from itertools import count
from threading import Lock
from typing import Any, Iterable

from fastapi import Request

from ..errors import AlpacaError, InvalidValueError, RequestRejected

# Matched case-insensitively, first occurrence wins.
CLIENT_PARAMETERS = ("ClientID", "ClientTransactionID")
# Must be sent with exactly this casing.
EXACT_CASE_PARAMETERS = ("Connected", "Brightness", "Action", "Parameters")

_INTEGER_RE = re.compile(r"-?\d+")

_current_context: contextvars.ContextVar["RequestContext | None"] = contextvars.ContextVar(
    "alpaca_request_context", default=None
)
_server_transaction_counter = count(1)
_transaction_lock = Lock()


@dataclass(frozen=True)
class RequestContext:
    client_id: int = 0
    client_transaction_id: int = 0
    parameters: dict[str, Any] = field(default_factory=dict)

    def get(self, name: str) -> Any:
        return self.parameters.get(name)

    def has(self, name: str) -> bool:
        return name in self.parameters


async def collect_parameters(request: Request) -> list[tuple[str, Any]]:
    """Gather request parameters from the query string and the request body, in order."""
    items: list[tuple[str, Any]] = list(request.query_params.multi_items())

    content_type = request.headers.get("content-type", "").lower()
    if "application/json" in content_type:
        raw = await request.body()
        if raw.strip():
            try:
                body = json.loads(raw)
            except ValueError as exc:
                raise RequestRejected("Malformed JSON request body") from exc
            if isinstance(body, dict):
                items.extend(body.items())
    elif "application/x-www-form-urlencoded" in content_type or "multipart/form-data" in content_type:
        form = await request.form()
        items.extend(form.multi_items())
    return items


def build_request_context(items: Iterable[tuple[str, Any]]) -> RequestContext:
    """Normalize raw ``(name, value)`` pairs into a :class:`RequestContext`.

    ``ClientID`` and ``ClientTransactionID`` are located case-insensitively and
    default to 0 when missing, unparsable or negative. Every other recognized
    parameter has to use its canonical casing; a near miss such as
    ``connected`` rejects the whole request with a plain-text 400 before any
    device logic runs. Unknown parameters are ignored.
    """
    client_values: dict[str, Any] = {}
    parameters: dict[str, Any] = {}
    client_lookup = {name.lower(): name for name in CLIENT_PARAMETERS}
    exact_lookup = {name.lower(): name for name in EXACT_CASE_PARAMETERS}

    for name, value in items:
        lowered = name.lower()
        if lowered in client_lookup:
            client_values.setdefault(client_lookup[lowered], value)
            continue
        canonical = exact_lookup.get(lowered)
        if canonical is None:
            continue
        if name != canonical:
            raise RequestRejected(f"Invalid parameter casing - use '{canonical}'")
        parameters.setdefault(canonical, value)

    return RequestContext(
        client_id=_parse_client_value(client_values.get("ClientID")),
        client_transaction_id=_parse_client_value(client_values.get("ClientTransactionID")),
        parameters=parameters,
    )


async def normalize_request(request: Request) -> RequestContext:
    return build_request_context(await collect_parameters(request))


async def bind_request_context(request: Request):
    context = await normalize_request(request)
    token = _current_context.set(context)
    try:
        yield context
    finally:
        _current_context.reset(token)


def current_context() -> RequestContext:
    return _current_context.get() or RequestContext()


def _parse_client_value(raw_value: Any) -> int:
    if raw_value is None or isinstance(raw_value, bool):
        return 0
    try:
        value = int(str(raw_value).strip())
    except ValueError:
        return 0
    return value if value >= 0 else 0


def coerce_value(value: Any) -> Any:
    """Convert string results into the JSON type they spell out."""
    if not isinstance(value, str):
        return value
    if (value.startswith("{") and value.endswith("}")) or (value.startswith("[") and value.endswith("]")):
        try:
            return json.loads(value)
        except ValueError:
            return value
    if value == "true":
        return True
    if value == "false":
        return False
    if _INTEGER_RE.fullmatch(value):
        return int(value)
    return value


def alpaca_response(
    value: Any = None,
    *,
    error_number: int = 0,
    error_message: str = "",
    client_transaction_id: int | None = None,
) -> dict[str, Any]:
    """Wrap a value in the standard Alpaca response envelope."""
    if client_transaction_id is None:
        client_transaction_id = current_context().client_transaction_id

    has_value = value is not None and value != ""
    if has_value:
        value = coerce_value(value)
        try:
            json.dumps(value, allow_nan=False)
        except (TypeError, ValueError) as exc:
            raise RequestRejected("Unable to encode response value") from exc

    payload: dict[str, Any] = {
        "ClientTransactionID": client_transaction_id,
        "ServerTransactionID": _next_server_transaction_id(),
        "ErrorNumber": int(error_number),
        "ErrorMessage": error_message,
    }
    if has_value:
        payload["Value"] = value
    return payload


def alpaca_error(exc: AlpacaError) -> dict[str, Any]:
    return alpaca_response(error_number=exc.error_number, error_message=exc.message)


def _next_server_transaction_id() -> int:
    with _transaction_lock:
        return next(_server_transaction_counter)


def require_bool(context: RequestContext, name: str) -> bool:
    if not context.has(name):
        raise InvalidValueError(f"{name} parameter required")
    value = context.get(name)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise InvalidValueError(f"Invalid {name} value: {value!r}")


def require_int(context: RequestContext, name: str) -> int:
    if not context.has(name):
        raise InvalidValueError(f"{name} parameter required")
    value = context.get(name)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and _INTEGER_RE.fullmatch(value):
        return int(value)
    raise InvalidValueError(f"Invalid {name} value: {value!r}")
