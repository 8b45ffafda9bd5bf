"""Error taxonomy for blamels.

Two families exist. `Declined` covers expected empty outcomes (no repository,
no blame coverage for a line) that handlers turn into an absent result.
`StructuralError` covers broken invariants and bad input; those propagate out
of the dispatch chain and are reported to the client as error responses.
"""

from __future__ import annotations


class BlameLsError(Exception):
    """Base class for every error raised by blamels."""


class Declined(BlameLsError):
    """Soft failure: the operation produces no result, and that is fine."""


class RepositoryNotFound(Declined):
    pass


class LineNotFound(Declined):
    def __init__(self, line: int, covered: int) -> None:
        super().__init__(f"line {line} is outside blame coverage ({covered} lines)")
        self.line = line
        self.covered = covered


class BlameUnavailable(Declined):
    """The file cannot be read or the backend refused to blame it (untracked, no commits yet)."""


class StatusUnavailable(Declined):
    pass


class StructuralError(BlameLsError):
    """Hard failure that aborts the current request."""

    # JSON-RPC error code used when this error escapes a request handler.
    code = -32603


class PathOutsideRepository(StructuralError):
    def __init__(self, path: str, workdir: str) -> None:
        super().__init__(f"{path} is not inside repository working directory {workdir}")
        self.path = path
        self.workdir = workdir


class InvariantViolation(StructuralError):
    """Raised by `blamels.invariants.never` when an unreachable path is hit."""

    def __init__(self, message: str, *, env: dict[str, object] | None = None) -> None:
        super().__init__(message)
        self.env = dict(env or {})


class UnknownCommand(StructuralError):
    code = -32602

    def __init__(self, identifier: str) -> None:
        super().__init__(f"unknown command: {identifier!r}")
        self.identifier = identifier


class InvalidCommandArguments(StructuralError):
    code = -32602


class PersistenceError(StructuralError):
    """Writing the index back to disk failed."""
