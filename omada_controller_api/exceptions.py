from typing import Optional


class OmadaControllerError(Exception):
    """Base exception for OmadaController errors."""

    pass


class OmadaConnectivityError(OmadaControllerError):
    """Raised when the Omada Controller cannot be reached (DNS, TLS, timeout, refused)."""

    pass


class OmadaAuthenticationError(OmadaControllerError):
    """Raised when the Omada Controller rejects the login."""

    pass


class OmadaAPIError(OmadaControllerError):
    """Raised when an authenticated API call returns a non-zero errorCode."""

    def __init__(self, code: Optional[int], path: str, raw_body: str = ""):
        self.code = code
        self.path = path
        self.raw_body = raw_body
        super().__init__(f"invalid response from '{path}' (errorCode={code}): {raw_body}")


class OmadaMalformedResponseError(OmadaConnectivityError):
    """Raised when a response cannot be parsed or lacks an expected field."""

    pass
