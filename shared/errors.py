class MissionControlError(RuntimeError):
    """Base class for failures surfaced by the data layer."""


class WorkspaceAccessError(MissionControlError):
    """Raised when the workspace root is missing or unreadable."""


class ProtocolError(RuntimeError):
    """Raised when NDJSON protocol contracts are violated."""
