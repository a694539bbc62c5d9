# watergo/client/errors.py
"""
Client-local errors raised by OrderApiClient.

NetworkError means "try again later": transport failures and 5xx.
ApiError means the server answered and refused: 4xx with an error kind.
"""

from typing import Any


class ClientError(Exception):
    pass


class NetworkError(ClientError):
    """Request did not get a usable answer (timeout, refused, 5xx)."""


class ApiError(ClientError):
    def __init__(self, status_code: int, kind: str, message: str):
        self.status_code = status_code
        self.kind = kind
        self.message = message
        super().__init__(f"{status_code} {kind}: {message}")

    @classmethod
    def from_detail(cls, status_code: int, detail: Any) -> "ApiError":
        """
        Build from a FastAPI error body.

        detail may be our {"error", "message"} dict, a plain string, or the
        list produced by request validation.
        """
        if isinstance(detail, dict):
            return cls(
                status_code,
                str(detail.get("error", "error")),
                str(detail.get("message", "")),
            )
        if isinstance(detail, list):
            messages = [
                str(d.get("msg", d)) if isinstance(d, dict) else str(d)
                for d in detail
            ]
            return cls(status_code, "validation", "; ".join(messages))
        return cls(status_code, _KIND_BY_STATUS.get(status_code, "error"), str(detail))

    @property
    def is_conflict(self) -> bool:
        return self.status_code == 409

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


_KIND_BY_STATUS: dict[int, str] = {
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
    422: "validation",
}
