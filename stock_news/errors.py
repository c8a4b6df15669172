from typing import Optional

from fastapi.responses import JSONResponse


class StockNewsError(Exception):
    """Base class for errors raised by this service."""


class ProviderError(StockNewsError):
    """
    An upstream provider (news API, language model) failed or could not be reached.

    Args:
        provider: short provider slug, e.g. "openai" or "marketaux"
        message: human-readable description of the failure
        status_code: HTTP status returned by the provider, if any
    """

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.message = message
        self.status_code = status_code
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.provider} error {self.status_code}: {self.message}"
        return f"{self.provider} error: {self.message}"


class ResponseFormatError(ProviderError):
    """The provider answered, but the payload could not be parsed into what we asked for."""


def error_response(error: Exception, status_code: int = 500) -> JSONResponse:
    """JSON body returned when a route fails: {"success": false, "error": "..."}."""
    return JSONResponse(status_code=status_code, content={"success": False, "error": str(error)})
