"""Security headers — applied to every response.

The preview only ever loads its own scripts, so the policy forbids inline
and third-party scripts outright; images may come from anywhere because
markdown documents routinely embed remote badges and screenshots.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chirp.http.request import Request
    from chirp.http.response import Response, SSEResponse, StreamingResponse
    from chirp.middleware.protocol import Next

    type AnyResponse = Response | StreamingResponse | SSEResponse


CONTENT_SECURITY_POLICY = "; ".join((
    "default-src 'self'",
    "script-src 'self'",
    "style-src 'self' 'unsafe-inline'",
    "img-src * data:",
    "connect-src 'self'",
    "font-src 'self'",
    "object-src 'none'",
    "base-uri 'self'",
    "form-action 'self'",
    "frame-ancestors 'none'",
))

SECURITY_HEADERS: tuple[tuple[str, str], ...] = (
    ("Content-Security-Policy", CONTENT_SECURITY_POLICY),
    ("X-Content-Type-Options", "nosniff"),
    ("X-Frame-Options", "DENY"),
    ("X-XSS-Protection", "1; mode=block"),
    ("Referrer-Policy", "strict-origin-when-cross-origin"),
)


def apply_security_headers(response: AnyResponse) -> AnyResponse:
    """Return ``response`` with the security headers added.

    Responses without ``with_header`` (raw streams) pass through unchanged.
    """
    if not hasattr(response, "with_header"):
        return response
    for name, value in SECURITY_HEADERS:
        response = response.with_header(name, value)
    return response


async def security_headers_middleware(request: Request, next: Next) -> AnyResponse:
    """Chirp middleware adding the security headers to every response."""
    return apply_security_headers(await next(request))
