"""
Pytest configuration for storefront tests.
"""

from decimal import Decimal

import httpx
import pytest
import pytest_asyncio

from apps.web.checkout.cart import CartStore
from apps.web.checkout.client import CheckoutAPIClient
from apps.web.checkout.credentials import StaticCredentialProvider
from apps.web.checkout.tests.factories import CartLineItemFactory

API_URL = "https://api.storefront.test"


@pytest.fixture
def api_url() -> str:
    """Base URL of the mocked ordering API."""
    return API_URL


@pytest.fixture
def token() -> str:
    """A customer bearer token."""
    return "customer-token-abc"


@pytest.fixture
def credentials(token: str) -> StaticCredentialProvider:
    """Credential provider for a logged-in customer."""
    return StaticCredentialProvider(token)


@pytest.fixture
def anonymous() -> StaticCredentialProvider:
    """Credential provider for a customer who is not logged in."""
    return StaticCredentialProvider(None)


@pytest.fixture
def cart() -> CartStore:
    """A cart with two lines totalling $37.49."""
    return CartStore(
        [
            CartLineItemFactory(
                id="line-1",
                product__title="Margherita Pizza",
                unit_price=Decimal("12.50"),
                quantity=2,
            ),
            CartLineItemFactory(
                id="line-2",
                product__title="Tiramisu",
                unit_price=Decimal("12.49"),
                quantity=1,
            ),
        ]
    )


@pytest.fixture
def empty_cart() -> CartStore:
    return CartStore()


@pytest_asyncio.fixture
async def api_client():
    """Ordering API client whose requests go through respx."""
    http_client = httpx.AsyncClient()
    yield CheckoutAPIClient(API_URL, http_client=http_client)
    await http_client.aclose()
