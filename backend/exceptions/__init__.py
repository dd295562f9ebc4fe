"""
Custom exceptions for AutoApply backend
"""


class PlatformNotSupportedException(Exception):
    """Exception raised when an automation is requested for an unknown platform"""

    def __init__(self, message: str, platform: str, supported_platforms: list = None):
        self.message = message
        self.platform = platform
        self.supported_platforms = supported_platforms or []
        super().__init__(self.message)

    def to_dict(self):
        """Convert exception details to dictionary for messaging"""
        return {
            "error_code": "PLATFORM_NOT_SUPPORTED",
            "message": self.message,
            "platform": self.platform,
            "supported_platforms": self.supported_platforms,
        }


class InvalidStartRequestException(Exception):
    """Exception raised when a start request fails validation"""

    def __init__(self, message: str, field: str = None):
        self.message = message
        self.field = field
        super().__init__(self.message)

    def to_dict(self):
        return {
            "error_code": "INVALID_START_REQUEST",
            "message": self.message,
            "field": self.field,
        }


class ElementNotFoundException(Exception):
    """Exception raised when a selector never appears within its timeout"""

    def __init__(self, message: str, selector: str, timeout_ms: int):
        self.message = message
        self.selector = selector
        self.timeout_ms = timeout_ms
        super().__init__(self.message)

    def to_dict(self):
        return {
            "error_code": "ELEMENT_NOT_FOUND",
            "message": self.message,
            "selector": self.selector,
            "timeout_ms": self.timeout_ms,
        }


class ApplicationTimeoutException(Exception):
    """Exception raised when an application does not finish in time"""

    def __init__(self, message: str, url: str, timeout_seconds: float):
        self.message = message
        self.url = url
        self.timeout_seconds = timeout_seconds
        super().__init__(self.message)

    def to_dict(self):
        return {
            "error_code": "APPLICATION_TIMEOUT",
            "message": self.message,
            "url": self.url,
            "timeout_seconds": self.timeout_seconds,
        }


class InvalidStateTransitionException(Exception):
    """Exception raised when the application state machine is driven off its edges"""

    def __init__(self, message: str, from_state: str, to_state: str):
        self.message = message
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(self.message)

    def to_dict(self):
        return {
            "error_code": "INVALID_STATE_TRANSITION",
            "message": self.message,
            "from_state": self.from_state,
            "to_state": self.to_state,
        }


class PortDisconnectedException(Exception):
    """Exception raised when posting to a port that is no longer connected"""

    def __init__(self, message: str, port_name: str):
        self.message = message
        self.port_name = port_name
        super().__init__(self.message)

    def to_dict(self):
        return {
            "error_code": "PORT_DISCONNECTED",
            "message": self.message,
            "port_name": self.port_name,
        }


class ApplicationLimitException(Exception):
    """Exception raised when user has reached their plan application limit"""

    def __init__(self, message: str, plan: str, limit: float, used: int):
        self.message = message
        self.plan = plan
        self.limit = limit
        self.used = used
        super().__init__(self.message)

    def to_dict(self):
        """Convert exception details to dictionary for messaging"""
        return {
            "error_code": "APPLICATION_LIMIT_REACHED",
            "message": self.message,
            "plan": self.plan,
            "limit": self.limit,
            "used": self.used,
            "call_to_action": "Upgrade your plan to apply to more jobs.",
        }
