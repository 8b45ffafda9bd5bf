"""Stage/unstage commands and the code actions that offer them."""

from __future__ import annotations

import enum
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path

from blamels.blame import RepositoryFactory
from blamels.exceptions import Declined, UnknownCommand
from blamels.vcs import INDEX_CHANGES, WORKTREE_CHANGES, FileStatus, open_repository

STAGE_FILE_COMMAND = "blamels.stageFile"
UNSTAGE_FILE_COMMAND = "blamels.unstageFile"


class Command(enum.Enum):
    STAGE_FILE = STAGE_FILE_COMMAND
    UNSTAGE_FILE = UNSTAGE_FILE_COMMAND

    @property
    def title(self) -> str:
        return _TITLES[self]


_TITLES = {
    Command.STAGE_FILE: "Stage file",
    Command.UNSTAGE_FILE: "Unstage file",
}


def parse(identifier: str) -> Command:
    try:
        return Command(identifier)
    except ValueError:
        raise UnknownCommand(identifier) from None


def to_identifier(command: Command) -> str:
    return command.value


def identifiers() -> list[str]:
    return [to_identifier(command) for command in Command]


def execute(
    command: Command,
    path: str | Path,
    *,
    repository_factory: RepositoryFactory = open_repository,
) -> None:
    """Apply `command` to the index entry for `path`.

    A path outside any repository is a no-op: the file may have been moved or
    deleted between offering the action and running it.
    """
    with ExitStack() as stack:
        try:
            repository = stack.enter_context(repository_factory(path))
        except Declined:
            return
        relative_path = repository.relativize(path)
        if command is Command.STAGE_FILE:
            if (repository.workdir / relative_path).exists():
                repository.index_add(relative_path)
            else:
                repository.index_remove(relative_path)
        else:
            # NOTE: this drops the entry from the index instead of restoring
            # the HEAD version, so unstaging a tracked file stages its removal.
            repository.index_remove(relative_path)
        repository.index_write()


@dataclass(frozen=True)
class CommandOffer:
    command: Command
    path: str

    @property
    def title(self) -> str:
        return self.command.title


def offer_for_status(status: FileStatus) -> Command | None:
    if status & WORKTREE_CHANGES:
        return Command.STAGE_FILE
    if status & INDEX_CHANGES:
        return Command.UNSTAGE_FILE
    return None


def code_actions(
    path: str | Path,
    *,
    repository_factory: RepositoryFactory = open_repository,
) -> list[CommandOffer]:
    try:
        with repository_factory(path) as repository:
            status = repository.status(repository.relativize(path))
    except Declined:
        return []
    command = offer_for_status(status)
    if command is None:
        return []
    return [CommandOffer(command=command, path=str(path))]
