"""OAuth2 error responses"""

from fastapi import Request
from fastapi.responses import JSONResponse

from authserver.schemas.oauth import TokenErrorResponse


class OAuthHTTPError(Exception):
    """Protocol-level failure rendered as an OAuth2 error body"""

    def __init__(
        self,
        error: str,
        error_description: str | None = None,
        status_code: int = 400,
        headers: dict[str, str] | None = None,
    ):
        self.error = error
        self.error_description = error_description
        self.status_code = status_code
        self.headers = headers
        super().__init__(error)


def error_response(
    error: str,
    error_description: str | None = None,
    status_code: int = 400,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """
    Create OAuth2 error response

    Args:
        error: OAuth2 error code
        error_description: Human-readable error description
        status_code: HTTP status code
        headers: Extra response headers

    Returns:
        JSONResponse with error
    """
    body = TokenErrorResponse(error=error, error_description=error_description)
    return JSONResponse(
        content=body.model_dump(exclude_none=True),
        status_code=status_code,
        headers=headers,
    )


async def oauth_http_error_handler(request: Request, exc: OAuthHTTPError) -> JSONResponse:
    """Exception handler registered on the application"""
    return error_response(exc.error, exc.error_description, exc.status_code, exc.headers)
