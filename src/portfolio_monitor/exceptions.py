class MonitorError(Exception):
    """Base class for all monitor errors"""
    pass

class UpstreamError(MonitorError):
    """Raised when the exchange is unreachable or returns an error code"""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.code = code

class StaleDataError(MonitorError):
    """Raised when a price or candle series needed for an evaluation is missing or too short"""
    pass

class ConflictError(MonitorError):
    """Raised when a conditional state store write loses a race"""
    pass

class ConfigurationError(MonitorError):
    """Raised when required credentials or identifiers are missing"""
    pass
