"""
Cart and checkout API views - the storefront's checkout surface.

These endpoints are used by the storefront front end:
- Cart: read the order summary and edit lines
- Checkout: create a payment session and get the hosted checkout URL
- Success: confirm the session the payment gateway returned with

Checkout errors are returned inline as ``{"error": ..., "code": ...}``.
"""

import json
import logging
from typing import Any

from django.core.exceptions import ImproperlyConfigured
from django.http import HttpRequest, JsonResponse
from django.views.decorators.cache import never_cache
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from pydantic import ValidationError as PydanticValidationError

from storefront_schemas import CheckoutErrorCode, ConfirmationState

from apps.web.checkout.cart import CartStore, SessionCartStorage, parse_line_item, summarize_cart
from apps.web.checkout.client import CheckoutAPIClient
from apps.web.checkout.conf import CheckoutConfig
from apps.web.checkout.confirmation import ConfirmationView
from apps.web.checkout.credentials import RequestCredentialProvider
from apps.web.checkout.exceptions import CheckoutError
from apps.web.checkout.gateways import PaymentGateway, RecordingNavigator, get_gateway
from apps.web.checkout.services import CheckoutContext, start_checkout

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[CheckoutErrorCode, int] = {
    CheckoutErrorCode.UNAUTHENTICATED: 401,
    CheckoutErrorCode.EMPTY_CART: 400,
    CheckoutErrorCode.MISSING_SESSION: 400,
    CheckoutErrorCode.PAYMENT_INCOMPLETE: 402,
    CheckoutErrorCode.SESSION_CREATION_FAILED: 502,
    CheckoutErrorCode.GATEWAY_INIT_FAILED: 502,
    CheckoutErrorCode.REDIRECT_FAILED: 502,
    CheckoutErrorCode.FETCH_FAILED: 502,
    CheckoutErrorCode.MALFORMED_RESPONSE: 502,
}


def _json_response(data: dict[str, Any], status: int = 200) -> JsonResponse:
    return JsonResponse(data, status=status)


def _error_response(error: CheckoutError) -> JsonResponse:
    return _json_response(
        {"error": error.message, "code": error.code.value},
        status=ERROR_STATUS.get(error.code, 400),
    )


def _not_configured(e: ImproperlyConfigured) -> JsonResponse:
    logger.error("Checkout is not configured: %s", e)
    return _json_response(
        {"error": "Checkout is temporarily unavailable.", "code": "not_configured"},
        status=503,
    )


def _cart_for(request: HttpRequest) -> CartStore:
    return CartStore(storage=SessionCartStorage(request.session))


def _cart_response(cart: CartStore, status: int = 200) -> JsonResponse:
    summary = summarize_cart(cart.get_items())
    return _json_response(summary.model_dump(mode="json"), status=status)


def _parse_body(request: HttpRequest) -> dict[str, Any] | None:
    try:
        body = json.loads(request.body or b"{}")
    except json.JSONDecodeError:
        return None
    return body if isinstance(body, dict) else None


def _build_gateway(config: CheckoutConfig, navigator: RecordingNavigator) -> PaymentGateway:
    if config.gateway == "stripe":
        return get_gateway(
            "stripe",
            publishable_key=config.stripe_publishable_key,
            navigator=navigator,
        )
    return get_gateway(config.gateway, navigator=navigator)


# =============================================================================
# Cart
# =============================================================================


@never_cache
@require_GET
def cart_summary(request: HttpRequest) -> JsonResponse:
    """
    GET /cart/

    Order summary: lines, total, and whether checkout is possible.
    """
    return _cart_response(_cart_for(request))


@csrf_exempt
@require_POST
def cart_add(request: HttpRequest) -> JsonResponse:
    """
    POST /cart/items

    Add a line to the cart (quantities merge for the same line id).

    Request body: {"id", "product": {"id", "title"}, "unit_price", "quantity"}
    """
    body = _parse_body(request)
    if body is None:
        return _json_response({"error": "Invalid JSON in request body"}, status=400)

    try:
        item = parse_line_item(body)
    except PydanticValidationError as e:
        details = [
            {
                "field": ".".join(str(loc) for loc in err["loc"]),
                "message": err["msg"],
            }
            for err in e.errors()
        ]
        return _json_response(
            {"error": "validation_error", "details": details}, status=400
        )

    cart = _cart_for(request)
    try:
        cart.add(item)
    except ValueError as e:
        return _json_response({"error": str(e)}, status=400)
    return _cart_response(cart, status=201)


@csrf_exempt
@require_http_methods(["POST", "DELETE"])
def cart_item(request: HttpRequest, item_id: str) -> JsonResponse:
    """
    POST   /cart/items/{item_id}  - set quantity ({"quantity": n}, n <= 0 removes)
    DELETE /cart/items/{item_id}  - remove the line
    """
    cart = _cart_for(request)

    if request.method == "DELETE":
        cart.remove(item_id)
        return _cart_response(cart)

    body = _parse_body(request)
    quantity = body.get("quantity") if body else None
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        return _json_response({"error": "quantity must be an integer"}, status=400)

    try:
        cart.update_quantity(item_id, quantity)
    except KeyError:
        return _json_response({"error": "Item not in cart"}, status=404)
    except ValueError as e:
        return _json_response({"error": str(e)}, status=400)
    return _cart_response(cart)


# =============================================================================
# Checkout
# =============================================================================


@csrf_exempt
@require_POST
async def checkout(request: HttpRequest) -> JsonResponse:
    """
    POST /checkout/

    Create a payment session for the cart and return the hosted checkout URL
    the browser should follow. When the ordering API returns only a session
    id, ``redirect_url`` is null and the front end calls
    ``stripe.redirectToCheckout`` with ``session_id`` and ``publishable_key``.

    Response: {"session_id", "publishable_key", "redirect_url"} or {"error", "code"}
    """
    try:
        config = CheckoutConfig.from_settings()
    except ImproperlyConfigured as e:
        return _not_configured(e)

    navigator = RecordingNavigator()
    async with CheckoutAPIClient(config.api_url, timeout=config.http_timeout) as client:
        context = CheckoutContext(
            cart=_cart_for(request),
            credentials=RequestCredentialProvider(request),
            client=client,
            gateway=_build_gateway(config, navigator),
        )
        try:
            session = await start_checkout(context)
        except CheckoutError as e:
            return _error_response(e)

    return _json_response(
        {
            "session_id": session.id,
            "publishable_key": config.stripe_publishable_key,
            "redirect_url": navigator.url,
        }
    )


@never_cache
@require_GET
async def checkout_success(request: HttpRequest) -> JsonResponse:
    """
    GET /checkout/success?session_id=...

    Confirm the payment session the gateway returned with. On success the cart
    is cleared and the response asks the browser to go home after a delay.
    If the client disconnects first, the pending fetch is cancelled and the
    cart is left alone.
    """
    try:
        config = CheckoutConfig.from_settings()
    except ImproperlyConfigured as e:
        return _not_configured(e)

    async with CheckoutAPIClient(config.api_url, timeout=config.http_timeout) as client:
        async with ConfirmationView(
            client,
            _cart_for(request),
            RequestCredentialProvider(request),
            RecordingNavigator(),
            home_url=config.home_url,
            redirect_delay=config.redirect_delay,
            require_paid=config.require_paid,
        ) as view:
            view.mount(request.GET)
            state = await view.wait()
            data = view.display()

    if state == ConfirmationState.CONFIRMED:
        response = _json_response(data)
        response["Refresh"] = f"{config.redirect_delay:g}; url={config.home_url}"
        return response

    error = view.error
    status = ERROR_STATUS.get(error.code, 400) if error else 500
    return _json_response(data, status=status)
