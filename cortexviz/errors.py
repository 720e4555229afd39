"""
Error Types
===========

Exceptions raised by the compressors, the SDR clustering engine and the
journal adapters.
"""


class CortexVizError(Exception):
    """Base class for cortexviz errors."""
    pass


class CombinerError(CortexVizError):
    """Combining function is not closed over its own output type."""
    pass


class JournalError(CortexVizError):
    """Transport failure while fetching per-step state from a journal."""

    def __init__(self, message: str, region: str = None, layer: str = None):
        super().__init__(message)
        self.region = region
        self.layer = layer


class InvariantViolation(CortexVizError):
    """A structural invariant was broken. Indicates a logic fault."""
    pass
