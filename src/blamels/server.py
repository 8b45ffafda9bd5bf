from __future__ import annotations

from typing import Callable

import structlog
from lsprotocol.types import (
    EXIT,
    INITIALIZE,
    INITIALIZED,
    SHUTDOWN,
    ExecuteCommandOptions,
    ServerCapabilities,
    TextDocumentSyncKind,
)

from blamels import __version__, commands
from blamels.config import ServerSettings, apply_initialization_options
from blamels.exceptions import StructuralError
from blamels.handlers import (
    CODE_ACTION,
    DID_CHANGE,
    DID_OPEN,
    EXECUTE_COMMAND,
    HOVER,
    code_action_handler_builder,
    did_change_handler_builder,
    did_open_handler_builder,
    execute_command_handler_builder,
    hover_handler_builder,
)
from blamels.json_types import JSONObject
from blamels.logs import configure_logging
from blamels.message_state import (
    CONVERTER,
    Handled,
    Notification,
    Request,
    Response,
    ResponseError,
    Unhandled,
)
from blamels.transport import Connection, IoThreads
from blamels.vfs import OverlayFileSystem

logger = structlog.get_logger(__name__)

SERVER_NAME = "blamels"

INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SERVER_NOT_INITIALIZED = -32002

_KNOWN_REQUESTS = {HOVER.method, CODE_ACTION.method, EXECUTE_COMMAND.method}


def server_capabilities() -> ServerCapabilities:
    return ServerCapabilities(
        hover_provider=True,
        text_document_sync=TextDocumentSyncKind.Full,
        code_action_provider=True,
        execute_command_provider=ExecuteCommandOptions(commands=commands.identifiers()),
    )


def initialize_result() -> JSONObject:
    return {
        "capabilities": CONVERTER.unstructure(server_capabilities()),
        "serverInfo": {"name": SERVER_NAME, "version": __version__},
    }


def _error_response(request: Request, code: int, message: str) -> Response:
    return Response(id=request.id, error=ResponseError(code=code, message=message))


class Server:
    def __init__(
        self,
        connection: Connection,
        settings: ServerSettings | None = None,
        fs: OverlayFileSystem | None = None,
    ) -> None:
        self.connection = connection
        self.settings = settings or ServerSettings()
        self.fs = fs or OverlayFileSystem()
        self.initialized = False
        self.shutdown_requested = False

    def dispatch_request(self, request: Request) -> Response:
        """Run the request handler chain; failures become error responses."""
        try:
            state = (
                Unhandled(request)
                .handle(HOVER, hover_handler_builder(self.fs, self.settings))
                .handle(CODE_ACTION, code_action_handler_builder())
                .handle(EXECUTE_COMMAND, execute_command_handler_builder())
            )
        except StructuralError as exc:
            logger.error("request failed", method=request.method, request_id=request.id, error=str(exc))
            return _error_response(request, exc.code, str(exc))
        except Exception as exc:
            logger.exception("request crashed", method=request.method, request_id=request.id)
            return _error_response(request, INTERNAL_ERROR, f"{type(exc).__name__}: {exc}")
        if isinstance(state, Handled):
            return state.output
        if request.method in _KNOWN_REQUESTS:
            logger.warning("malformed request params", method=request.method, request_id=request.id)
            return _error_response(request, INVALID_PARAMS, f"invalid params for {request.method}")
        logger.warning("unhandled request", method=request.method, request_id=request.id)
        return _error_response(request, METHOD_NOT_FOUND, f"method not found: {request.method}")

    def dispatch_notification(self, notification: Notification) -> None:
        try:
            state = (
                Unhandled(notification)
                .handle(DID_OPEN, did_open_handler_builder(self.fs))
                .handle(DID_CHANGE, did_change_handler_builder(self.fs))
            )
        except Exception:
            logger.exception("notification failed", method=notification.method)
            return
        if isinstance(state, Unhandled):
            if notification.method.startswith("$/"):
                logger.debug("ignoring notification", method=notification.method)
            else:
                logger.warning("unhandled notification", method=notification.method)

    def _initialize(self, request: Request) -> Response:
        params = request.params if isinstance(request.params, dict) else {}
        settings, error = apply_initialization_options(
            self.settings, params.get("initializationOptions")
        )
        if error is not None:
            logger.warning("ignoring invalid initializationOptions", error=str(error))
        if (settings.log_level, settings.log_format) != (self.settings.log_level, self.settings.log_format):
            configure_logging(settings)
        self.settings = settings
        self.initialized = True
        logger.info("initialized", root_uri=params.get("rootUri"), version=__version__)
        return Response(id=request.id, result=initialize_result())

    def handle_message(self, envelope: Request | Notification | Response) -> int | None:
        """Process one envelope; returns an exit code once `exit` arrives."""
        if isinstance(envelope, Response):
            return None
        if isinstance(envelope, Notification):
            if envelope.method == EXIT:
                return 0 if self.shutdown_requested else 1
            if envelope.method == INITIALIZED or not self.initialized:
                return None
            self.dispatch_notification(envelope)
            return None
        if envelope.method == INITIALIZE:
            if self.initialized:
                response = _error_response(envelope, INVALID_REQUEST, "server already initialized")
            else:
                response = self._initialize(envelope)
        elif not self.initialized:
            response = _error_response(envelope, SERVER_NOT_INITIALIZED, "server not initialized")
        elif self.shutdown_requested:
            response = _error_response(envelope, INVALID_REQUEST, "server is shutting down")
        elif envelope.method == SHUTDOWN:
            self.shutdown_requested = True
            response = Response(id=envelope.id, result=None)
        else:
            response = self.dispatch_request(envelope)
        self.connection.send(response)
        return None

    def run(self) -> int:
        while True:
            envelope = self.connection.receive()
            if envelope is None:
                logger.info("input stream closed", shutdown_requested=self.shutdown_requested)
                return 0 if self.shutdown_requested else 1
            exit_code = self.handle_message(envelope)
            if exit_code is not None:
                return exit_code


def start(
    settings: ServerSettings | None = None,
    connection_factory: Callable[[], tuple[Connection, IoThreads]] = Connection.stdio,
) -> int:
    """Serve until the client exits; returns the process exit code."""
    connection, io_threads = connection_factory()
    exit_code = Server(connection, settings).run()
    connection.close()
    io_threads.join(timeout=5.0)
    return exit_code
