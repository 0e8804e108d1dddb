"""Exception hierarchy for mlnet.

Parameter and emptiness errors derive from ``ValueError`` so callers that
already guard against bad input keep working; invariant errors derive from
``RuntimeError`` because they indicate a defect rather than bad input.
"""


class MLNetError(Exception):
    """Base class for all mlnet errors."""


class InvalidParameterError(MLNetError, ValueError):
    """A caller-supplied parameter is out of range (e.g. gamma <= 0, omega < 0)."""


class EmptyNetworkError(MLNetError, ValueError):
    """The network has no nodes, so there is nothing to partition."""


class InternalInvariantError(MLNetError, RuntimeError):
    """Community bookkeeping went out of sync with the supra matrix."""
