"""Invariant markers for blamels."""

from __future__ import annotations

from typing import NoReturn

from blamels.exceptions import InvariantViolation


def never(reason: str = "", **env: object) -> NoReturn:
    """Mark a code path as unreachable.

    Reaching it means a collaborator broke its contract (a commit id the blame
    engine produced cannot be found, a commit has no author). The env payload
    is attached to the raised error for logging.
    """
    raise InvariantViolation(reason or "never() marker reached", env=env)
