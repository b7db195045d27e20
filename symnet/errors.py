class SymNetError(RuntimeError):
    """Base class for all Composer Control client errors."""
    pass


class ValidationError(SymNetError, ValueError):
    """Raised when an operation is called with an out-of-range or mistyped argument."""
    pass


class NotReadyError(SymNetError):
    """Raised when writing to a connection that is not open."""
    pass


class ReplyTimeoutError(SymNetError):
    """Raised on a command's future when no reply arrived within the response window."""
    def __init__(self, message, command_text=None):
        super().__init__(message)
        self.command_text = command_text


class UnknownCommandError(SymNetError, KeyError):
    """Raised when building a command that is not in the command table."""
    pass
