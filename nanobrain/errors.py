"""
nanobrain error taxonomy.

Single-item operations (retrieve, update, delete, tracker lookups) raise
these to the caller. Batch lifecycle passes catch them per item, record the
skip in their report details, and keep going.
"""


class NanobrainError(Exception):
    """Base class for all nanobrain errors."""
    pass


class MemoryNotFoundError(NanobrainError):
    """Raised when a memory id is absent from the store (or archived)."""

    def __init__(self, memory_id: str):
        super().__init__(f"Memory not found: {memory_id}")
        self.memory_id = memory_id


class MemoryConflictError(NanobrainError):
    """Raised when creating a memory whose id already exists."""

    def __init__(self, memory_id: str, path: str):
        super().__init__(f"Memory already exists at {path}. Use update instead.")
        self.memory_id = memory_id
        self.path = path


class InvalidInputError(NanobrainError):
    """Raised for malformed metadata, unknown types or signals, bad names."""
    pass


class PinnedMemoryError(NanobrainError):
    """Raised when archiving a pinned memory."""

    def __init__(self, memory_id: str):
        super().__init__(f"Cannot archive pinned memory: {memory_id}")
        self.memory_id = memory_id
