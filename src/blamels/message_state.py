"""Message state: routing one inbound envelope through typed handlers.

A freshly received request or notification starts as `Unhandled`. Each
`handle` call tries one handler; the first whose method name and payload
shape match runs, and the state becomes `Handled`. Every later `handle` call
is a passthrough, so at most one handler body runs per message:

    state = (
        Unhandled(request)
        .handle(HOVER, on_hover)
        .handle(CODE_ACTION, on_code_action)
    )

Handler errors are not caught here; they abort the chain and reach whoever
started it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, TypeAlias, TypeVar

from cattrs.errors import BaseValidationError
from lsprotocol import converters

from blamels.json_types import JSONValue

CONVERTER = converters.get_converter()

RequestId: TypeAlias = int | str

P = TypeVar("P")
R = TypeVar("R")
InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")


@dataclass(frozen=True)
class Request:
    id: RequestId
    method: str
    params: JSONValue = None


@dataclass(frozen=True)
class Notification:
    method: str
    params: JSONValue = None


@dataclass(frozen=True)
class ResponseError:
    code: int
    message: str
    data: JSONValue = None


@dataclass(frozen=True)
class Response:
    id: RequestId | None
    result: JSONValue = None
    error: ResponseError | None = None


Envelope: TypeAlias = Request | Notification | Response


@dataclass(frozen=True)
class RequestKind(Generic[P]):
    method: str
    params_type: type[P]


@dataclass(frozen=True)
class NotificationKind(Generic[P]):
    method: str
    params_type: type[P]


class _NoMatch:
    pass


_NO_MATCH = _NoMatch()


def decode_params(
    kind: RequestKind[P] | NotificationKind[P], method: str, params: JSONValue
) -> P | _NoMatch:
    """Structure `params` as the kind's parameter type, or report no match."""
    if method != kind.method:
        return _NO_MATCH
    try:
        return CONVERTER.structure(params, kind.params_type)
    except (BaseValidationError, AttributeError, KeyError, TypeError, ValueError):
        return _NO_MATCH


@dataclass(frozen=True)
class Unhandled(Generic[InputT]):
    input: InputT

    def handle(
        self,
        kind: RequestKind[P] | NotificationKind[P],
        handler: RequestHandler | NotificationHandler,
    ) -> DispatchState:
        return handle(self, kind, handler)


@dataclass(frozen=True)
class Handled(Generic[OutputT]):
    output: OutputT

    def handle(
        self,
        kind: RequestKind[P] | NotificationKind[P],
        handler: RequestHandler | NotificationHandler,
    ) -> DispatchState:
        return self


DispatchState: TypeAlias = Unhandled | Handled

RequestHandler: TypeAlias = Callable[[RequestId, P], R]
NotificationHandler: TypeAlias = Callable[[P], None]


def handle(
    state: DispatchState,
    kind: RequestKind[P] | NotificationKind[P],
    handler: RequestHandler | NotificationHandler,
) -> DispatchState:
    if isinstance(state, Handled):
        return state
    envelope = state.input
    if isinstance(kind, RequestKind) and isinstance(envelope, Request):
        params = decode_params(kind, envelope.method, envelope.params)
        if isinstance(params, _NoMatch):
            return state
        result = handler(envelope.id, params)
        return Handled(Response(id=envelope.id, result=CONVERTER.unstructure(result)))
    if isinstance(kind, NotificationKind) and isinstance(envelope, Notification):
        params = decode_params(kind, envelope.method, envelope.params)
        if isinstance(params, _NoMatch):
            return state
        handler(params)
        return Handled(None)
    return state
