"""
Error taxonomy of the scheduling engine.

Mutating operations collect these in ``result.errors`` instead of raising them,
so the caller can show every problem at once. Lookups used as preconditions,
such as ``TaskStore.require()``, raise them directly.
"""
from typing import Optional

class EngineError(Exception):
    """Base class for problems detected by the engine."""
    def __init__(self, message: str, task_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.task_id = task_id

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, task_id={self.task_id!r})"

class ValidationError(EngineError):
    """Cycle detected, malformed lag, unsatisfiable constraint."""
    pass

class StructuralError(EngineError):
    """Indent/outdent without a valid target, or a broken parent/children linkage."""
    pass

class NotFoundError(EngineError):
    """A referenced task id is not present in the task store."""
    pass
