"""blamels package root."""

from blamels.exceptions import Declined, InvariantViolation, StructuralError
from blamels.invariants import never

__all__ = ["__version__", "Declined", "InvariantViolation", "StructuralError", "never"]

__version__ = "0.1.0"
