# graphmemory/core/exceptions.py
class GraphMemoryException(Exception):
    """Base class for every error raised by the graph memory core."""
    def __init__(self, message="Graph memory error."):
        self.message = message
        super().__init__(self.message)


class GraphValidationException(GraphMemoryException):
    """Raised when input fails validation (missing field, duplicate, bad weight)."""
    def __init__(self, message="Validation failed."):
        super().__init__(message)


class NotFoundException(GraphMemoryException):
    def __init__(self, message="Not found."):
        super().__init__(message)


class NodeNotFoundException(NotFoundException):
    """Raised when a node is not found for a given name."""
    def __init__(self, message="Node not found."):
        super().__init__(message)


class EdgeNotFoundException(NotFoundException):
    """Raised when no edge matches a (from, to, edgeType) triple."""
    def __init__(self, message="Edge not found."):
        super().__init__(message)


class SchemaNotFoundException(NotFoundException):
    def __init__(self, message="Schema not found."):
        super().__init__(message)


class StorageException(GraphMemoryException):
    """Raised on file I/O failure or a corrupt record in strict mode."""
    def __init__(self, message="Storage failure."):
        super().__init__(message)


class TransactionStateException(GraphMemoryException):
    """Raised when a transaction call does not fit the current state."""
    def __init__(self, message="Invalid transaction state."):
        super().__init__(message)
