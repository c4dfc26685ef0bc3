"""Bearer credential providers for authenticated ordering API calls."""

from typing import Any, Protocol, runtime_checkable

ACCESS_TOKEN_SESSION_KEY = "access_token"


@runtime_checkable
class CredentialProvider(Protocol):
    """Supplies the bearer token for the current customer, if any."""

    def get_token(self) -> str | None: ...


class StaticCredentialProvider:
    """Credential provider for a token known up front."""

    def __init__(self, token: str | None) -> None:
        self._token = token

    def get_token(self) -> str | None:
        return self._token or None


class RequestCredentialProvider:
    """
    Resolve the customer's token from a Django request.

    Looks at (in order):
    1. ``Authorization: Bearer <token>`` header (API clients)
    2. ``access_token`` stored in the session at login
    """

    def __init__(self, request: Any) -> None:
        self.request = request

    def get_token(self) -> str | None:
        header = self.request.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            return token.strip()

        session = getattr(self.request, "session", None)
        if session is not None:
            token = session.get(ACCESS_TOKEN_SESSION_KEY)
            if token:
                return str(token)
        return None
