"""Checkout schemas - data contracts for the cart and payment session flow."""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field

# Largest quantity a single cart line may hold
MAX_LINE_QUANTITY = 999

# =============================================================================
# Enums
# =============================================================================


class ConfirmationState(str, Enum):
    """States of the checkout confirmation view."""

    AWAITING_PARAMS = "awaiting_params"
    LOADING = "loading"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class CheckoutErrorCode(str, Enum):
    """Error taxonomy for the checkout flow."""

    UNAUTHENTICATED = "unauthenticated"
    EMPTY_CART = "empty_cart"
    SESSION_CREATION_FAILED = "session_creation_failed"
    GATEWAY_INIT_FAILED = "gateway_init_failed"
    REDIRECT_FAILED = "redirect_failed"
    MISSING_SESSION = "missing_session"
    FETCH_FAILED = "fetch_failed"
    MALFORMED_RESPONSE = "malformed_response"
    PAYMENT_INCOMPLETE = "payment_incomplete"


# =============================================================================
# Cart
# =============================================================================


class ProductRef(BaseModel):
    """Reference to the menu product a cart line was created from."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""

    @property
    def display_title(self) -> str:
        return self.title or "Product"


class CartLineItem(BaseModel):
    """A single line in the customer's cart."""

    model_config = ConfigDict(frozen=True)

    id: str
    product: ProductRef
    unit_price: Decimal = Field(ge=Decimal("0"), max_digits=10, decimal_places=2)
    quantity: int = Field(gt=0, le=MAX_LINE_QUANTITY)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def subtotal(self) -> Decimal:
        """Line contribution to the cart total."""
        return self.unit_price * self.quantity


# =============================================================================
# Payment session
# =============================================================================


class CheckoutSession(BaseModel):
    """Payment session created by the ordering API."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Opaque gateway session identifier")
    url: str | None = Field(default=None, description="Hosted checkout URL")


class CustomerDetails(BaseModel):
    """Customer details attached to a completed checkout session."""

    model_config = ConfigDict(frozen=True)

    email: str | None = None


class ConfirmedPayment(BaseModel):
    """Payment record returned for a completed checkout session."""

    model_config = ConfigDict(frozen=True)

    id: str
    amount_total: int = Field(description="Amount in minor currency units")
    currency: str = Field(min_length=3, max_length=3)
    customer_details: CustomerDetails = Field(default_factory=CustomerDetails)
    payment_status: str | None = None

    @property
    def customer_email(self) -> str | None:
        return self.customer_details.email
