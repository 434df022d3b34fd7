class ProtocolError(RuntimeError):
    """Raised when NDJSON protocol contracts are violated."""


class ServiceCrashedError(RuntimeError):
    """Raised when a child service exits during a request."""


class MediaGateError(Exception):
    pass


class ConfigurationError(MediaGateError):
    """Raised when required settings or secrets are missing."""


class AccessGrantError(MediaGateError):
    """Raised when the payment service does not hand out a usable access grant."""


class MaterializationError(MediaGateError):
    """Raised when a generated artifact cannot be downloaded."""

    def __init__(self, uri: str, reason: str):
        super().__init__(f"failed to download {uri}: {reason}")
        self.uri = uri
        self.reason = reason
