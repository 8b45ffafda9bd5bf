"""Typed LSP handlers bound to the overlay filesystem and settings."""

from __future__ import annotations

from pathlib import Path
from urllib.parse import unquote, urlparse

import structlog
from lsprotocol.types import (
    TEXT_DOCUMENT_CODE_ACTION,
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_HOVER,
    WORKSPACE_EXECUTE_COMMAND,
    CodeAction,
    CodeActionKind,
    CodeActionParams,
    Command as LspCommand,
    DidChangeTextDocumentParams,
    DidOpenTextDocumentParams,
    ExecuteCommandParams,
    Hover,
    HoverParams,
    MarkupContent,
    MarkupKind,
)
from pygls.uris import to_fs_path

from blamels import blame, commands
from blamels.config import ServerSettings
from blamels.exceptions import Declined, InvalidCommandArguments
from blamels.message_state import NotificationKind, RequestId, RequestKind
from blamels.vfs import OverlayFileSystem

logger = structlog.get_logger(__name__)

HOVER = RequestKind(TEXT_DOCUMENT_HOVER, HoverParams)
CODE_ACTION = RequestKind(TEXT_DOCUMENT_CODE_ACTION, CodeActionParams)
EXECUTE_COMMAND = RequestKind(WORKSPACE_EXECUTE_COMMAND, ExecuteCommandParams)
DID_OPEN = NotificationKind(TEXT_DOCUMENT_DID_OPEN, DidOpenTextDocumentParams)
DID_CHANGE = NotificationKind(TEXT_DOCUMENT_DID_CHANGE, DidChangeTextDocumentParams)


def uri_to_path(uri: str) -> str:
    path = to_fs_path(uri)
    if path is not None:
        return path
    parsed = urlparse(uri)
    return unquote(parsed.path) if parsed.scheme == "file" else uri


def hover_handler_builder(fs: OverlayFileSystem, settings: ServerSettings):
    def _hover(request_id: RequestId, params: HoverParams) -> Hover | None:
        query = blame.BlameQuery(
            path=uri_to_path(params.text_document.uri),
            line=params.position.line,
        )
        try:
            text = blame.resolve(
                query,
                fs=fs,
                uncommitted_text=settings.uncommitted_text,
                window_seconds=settings.relative_window_seconds,
            )
        except Declined as exc:
            logger.debug("hover declined", request_id=request_id, path=query.path, reason=str(exc))
            return None
        return Hover(contents=MarkupContent(kind=MarkupKind.Markdown, value=text))

    return _hover


def code_action_handler_builder():
    def _code_action(request_id: RequestId, params: CodeActionParams) -> list[CodeAction]:
        path = uri_to_path(params.text_document.uri)
        return [
            CodeAction(
                title=offer.title,
                kind=CodeActionKind.Source,
                command=LspCommand(
                    title=offer.title,
                    command=commands.to_identifier(offer.command),
                    arguments=[offer.path],
                ),
            )
            for offer in commands.code_actions(path)
        ]

    return _code_action


def execute_command_handler_builder():
    def _execute_command(request_id: RequestId, params: ExecuteCommandParams) -> None:
        command = commands.parse(params.command)
        arguments = list(params.arguments or [])
        if len(arguments) != 1 or not isinstance(arguments[0], str):
            raise InvalidCommandArguments(
                f"{params.command} expects exactly one path argument, got {arguments!r}"
            )
        path = arguments[0]
        if "://" in path:
            path = uri_to_path(path)
        logger.info("executing command", request_id=request_id, command=command.value, path=path)
        commands.execute(command, Path(path))
        return None

    return _execute_command


def did_open_handler_builder(fs: OverlayFileSystem):
    def _did_open(params: DidOpenTextDocumentParams) -> None:
        fs.write_text(uri_to_path(params.text_document.uri), params.text_document.text)

    return _did_open


def did_change_handler_builder(fs: OverlayFileSystem):
    def _did_change(params: DidChangeTextDocumentParams) -> None:
        path = uri_to_path(params.text_document.uri)
        for change in params.content_changes:
            fs.write_text(path, change.text)

    return _did_change
