"""HTTP transport."""

from apiwave.transport.http import (
    AiohttpTransport,
    HttpResponse,
    HttpTransport,
    TransportError,
    TransportTimeout,
)

__all__ = [
    "AiohttpTransport",
    "HttpResponse",
    "HttpTransport",
    "TransportError",
    "TransportTimeout",
]
