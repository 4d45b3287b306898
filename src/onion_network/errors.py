class OnionNetworkError(Exception):
    """Base class for every error raised by the simulator."""


class KeyCodecError(OnionNetworkError):
    """Key generation, import or export failed."""


class DecryptionError(OnionNetworkError):
    """Wrong key, corrupted ciphertext or truncated input."""


class MalformedLayerError(OnionNetworkError):
    """Layer too short for its framing, or an unparseable destination header."""


class DirectoryError(OnionNetworkError):
    """Directory rejected a request."""


class EmptyDirectoryError(DirectoryError):
    """No nodes registered when a circuit was requested."""


class TransportError(OnionNetworkError):
    """Delivery to another participant failed."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code
