"""Ordering API client - checkout session endpoints."""

import logging
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from storefront_schemas import CheckoutSession, ConfirmedPayment

from apps.web.checkout.cancellation import CancellationToken
from apps.web.checkout.exceptions import (
    FetchFailed,
    MalformedResponse,
    SessionCreationFailed,
)

logger = logging.getLogger(__name__)

# Upstream bodies echoed back to the customer are capped
MAX_DETAIL_LENGTH = 500


class CheckoutAPIClient:
    """
    Client for the ordering API's checkout endpoints.

    The API creates Stripe Checkout sessions server-side (it computes the
    authoritative charge amount) and exposes the completed session for the
    confirmation page.
    """

    CREATE_SESSION_PATH = "/api/checkout/create-session/"
    SESSION_PATH = "/api/checkout/session/{session_id}"

    def __init__(
        self,
        base_url: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: Ordering API base URL; trailing slashes are ignored.
            http_client: Optional HTTP client for dependency injection (testing).
            timeout: Request timeout in seconds for an owned client.
        """
        if not base_url:
            raise ValueError("Ordering API base URL is required")
        self.base_url = base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "CheckoutAPIClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def create_session_url(self) -> str:
        return f"{self.base_url}{self.CREATE_SESSION_PATH}"

    def session_url(self, session_id: str) -> str:
        return self.base_url + self.SESSION_PATH.format(
            session_id=quote(session_id, safe="")
        )

    def _headers(self, token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    # =========================================================================
    # Session creation
    # =========================================================================

    async def create_session(self, token: str) -> CheckoutSession:
        """
        Ask the ordering API to create a checkout session for the customer's cart.

        Args:
            token: Customer bearer token.

        Returns:
            The created session (id, and hosted URL when provided).

        Raises:
            SessionCreationFailed: On network failure, a non-success status, or
                a response without a session id. The message is the API's
                ``error`` field when present.
        """
        try:
            response = await self._client.post(
                self.create_session_url,
                json={},
                headers=self._headers(token),
            )
        except httpx.RequestError as e:
            logger.warning("Checkout session request failed: %s", e)
            raise SessionCreationFailed() from e

        if not response.is_success:
            message = _error_field(response)
            logger.warning(
                "Checkout session creation rejected (%d): %s",
                response.status_code,
                message or response.text[:MAX_DETAIL_LENGTH],
            )
            if message:
                raise SessionCreationFailed(message, status_code=response.status_code)
            raise SessionCreationFailed(status_code=response.status_code)

        try:
            session = CheckoutSession.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.warning("Checkout session response has no usable id: %s", e)
            raise SessionCreationFailed(status_code=response.status_code) from e

        logger.info("Created checkout session %s", session.id)
        return session

    # =========================================================================
    # Session confirmation
    # =========================================================================

    async def get_session(
        self,
        session_id: str,
        token: str,
        cancel_token: CancellationToken | None = None,
    ) -> ConfirmedPayment:
        """
        Fetch the payment record for a completed checkout session.

        Args:
            session_id: Session identifier from the gateway's return URL.
            token: Customer bearer token.
            cancel_token: Scope of the calling view; checked before the request
                and before the result is returned.

        Returns:
            The confirmed payment record.

        Raises:
            FetchFailed: On network failure or a non-success status (the
                response body is the error detail).
            MalformedResponse: If the body is not a JSON payment record.
            asyncio.CancelledError: If the scope was cancelled.
        """
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        try:
            response = await self._client.get(
                self.session_url(session_id),
                headers=self._headers(token),
            )
        except httpx.RequestError as e:
            logger.warning("Checkout session fetch failed for %s: %s", session_id, e)
            raise FetchFailed() from e

        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        if not response.is_success:
            body = response.text[:MAX_DETAIL_LENGTH]
            logger.warning(
                "Checkout session fetch for %s returned %d", session_id, response.status_code
            )
            raise FetchFailed(
                f"Error: {body}",
                status_code=response.status_code,
                response_body=body,
            )

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            raise MalformedResponse(
                f"Unexpected response: {response.text[:MAX_DETAIL_LENGTH]}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponse(
                f"Unexpected response: {response.text[:MAX_DETAIL_LENGTH]}"
            ) from e

        if not isinstance(data, dict):
            raise MalformedResponse(f"Unexpected response: {str(data)[:MAX_DETAIL_LENGTH]}")

        try:
            return ConfirmedPayment.model_validate(data)
        except ValidationError as e:
            logger.warning("Unexpected payment record for %s: %s", session_id, e)
            raise MalformedResponse("Unexpected response from payment service.") from e


def _error_field(response: httpx.Response) -> str | None:
    """Extract the ``error`` message from an error response body, if any."""
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, str) and error.strip():
            return error.strip()
    return None
