"""Exceptions raised by the association engine."""


class ConfigurationError(ValueError):
    """Parameters cannot represent every associating active cell on one segment.

    Raised before any mutation. Fix the parameters and repeat the whole cycle.
    """


class UnsupportedRelationError(NotImplementedError):
    """Association within the same area (distal segments) was requested."""


class InvariantViolation(RuntimeError):
    """Internal defect, e.g. a segment with an unknown type tag."""
