"""
Checkout confirmation - resolve a returning customer's payment session.

When the payment gateway sends the customer back, the return URL carries a
``session_id``. The confirmation view fetches the payment record for it,
clears the cart once, and sends the customer home after a short delay.

The flow is split in two:

- ``ConfirmationMachine`` is a pure transition table. It consumes discrete
  events (mount, fetch succeeded, fetch failed, teardown, return home) and
  returns the effects to perform. It does no I/O.
- ``ConfirmationView`` runs on the asyncio event loop and performs those
  effects: it starts and cancels the fetch task, resets the cart, and
  schedules or cancels the navigation timer.

States::

    awaiting_params --mount--> loading --fetch_succeeded--> confirmed
                      |                 \\--fetch_failed---> failed
                      \\--(missing session / credential)---> failed
"""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from storefront_schemas import ConfirmationState, ConfirmedPayment

from apps.web.checkout.cancellation import CancellationToken
from apps.web.checkout.cart import CartStore
from apps.web.checkout.client import CheckoutAPIClient
from apps.web.checkout.credentials import CredentialProvider
from apps.web.checkout.exceptions import (
    CheckoutError,
    MissingSession,
    PaymentIncomplete,
    Unauthenticated,
)
from apps.web.checkout.formatting import format_amount
from apps.web.checkout.gateways.base import NavigationError, Navigator

logger = logging.getLogger(__name__)

DEFAULT_REDIRECT_DELAY = 10.0
DEFAULT_HOME_URL = "/"
PAID_STATUSES = frozenset({"paid", "no_payment_required"})
LOADING_MESSAGE = "Loading payment details..."


# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True)
class MountEvent:
    """The view became active with these parameters."""

    session_id: str | None
    token: str | None


@dataclass(frozen=True)
class FetchSucceededEvent:
    activation: CancellationToken
    payment: ConfirmedPayment


@dataclass(frozen=True)
class FetchFailedEvent:
    activation: CancellationToken
    error: CheckoutError


@dataclass(frozen=True)
class TeardownEvent:
    """The view is going away."""


@dataclass(frozen=True)
class ReturnHomeEvent:
    """The customer asked to go back home."""


ConfirmationEvent = (
    MountEvent | FetchSucceededEvent | FetchFailedEvent | TeardownEvent | ReturnHomeEvent
)


# =============================================================================
# Effects
# =============================================================================


@dataclass(frozen=True)
class StartFetch:
    session_id: str
    token: str
    activation: CancellationToken


@dataclass(frozen=True)
class CancelFetch:
    activation: CancellationToken


@dataclass(frozen=True)
class ResetCart:
    pass


@dataclass(frozen=True)
class ScheduleNavigation:
    url: str
    delay: float


@dataclass(frozen=True)
class CancelNavigation:
    pass


@dataclass(frozen=True)
class Navigate:
    url: str


ConfirmationEffect = (
    StartFetch | CancelFetch | ResetCart | ScheduleNavigation | CancelNavigation | Navigate
)


# =============================================================================
# State machine
# =============================================================================


class ConfirmationMachine:
    """
    Transition table for the confirmation view.

    Args:
        home_url: Where the customer is sent after confirmation.
        redirect_delay: Seconds between confirmation and the automatic
            navigation home.
        require_paid: Only confirm records whose ``payment_status`` (when
            present) says the payment went through.
    """

    def __init__(
        self,
        home_url: str = DEFAULT_HOME_URL,
        redirect_delay: float = DEFAULT_REDIRECT_DELAY,
        require_paid: bool = True,
    ) -> None:
        self.home_url = home_url
        self.redirect_delay = redirect_delay
        self.require_paid = require_paid

        self.state = ConfirmationState.AWAITING_PARAMS
        self.payment: ConfirmedPayment | None = None
        self.error: CheckoutError | None = None
        self.activation: CancellationToken | None = None
        self.torn_down = False
        self.cart_reset = False

        self._params: tuple[str | None, str | None] | None = None
        self._fetch_started = False
        self._activations = 0

    def dispatch(self, event: ConfirmationEvent) -> list[ConfirmationEffect]:
        """Apply ``event`` and return the effects the runtime must perform."""
        if self.torn_down:
            return []

        match event:
            case MountEvent():
                return self._on_mount(event)
            case FetchSucceededEvent():
                return self._on_fetch_succeeded(event)
            case FetchFailedEvent():
                return self._on_fetch_failed(event)
            case TeardownEvent():
                return self._on_teardown()
            case ReturnHomeEvent():
                return self._on_return_home()
            case _:
                raise TypeError(f"Unknown confirmation event: {event!r}")

    def _on_mount(self, event: MountEvent) -> list[ConfirmationEffect]:
        params = (event.session_id, event.token)

        if self.state == ConfirmationState.CONFIRMED:
            # The cart was already reset for this confirmation
            return []
        if self.state == ConfirmationState.FAILED and self._fetch_started:
            return []
        if params == self._params:
            return []

        effects: list[ConfirmationEffect] = []
        if self.state == ConfirmationState.LOADING and self.activation is not None:
            effects.append(CancelFetch(self.activation))
            self.activation = None
        self._params = params

        if not event.session_id:
            self._fail(MissingSession())
            return effects
        if not event.token:
            self._fail(Unauthenticated())
            return effects

        self._activations += 1
        self.activation = CancellationToken(label=f"confirm-{self._activations}")
        self.state = ConfirmationState.LOADING
        self.error = None
        self._fetch_started = True
        effects.append(StartFetch(event.session_id, event.token, self.activation))
        return effects

    def _is_current(self, activation: CancellationToken) -> bool:
        return (
            self.state == ConfirmationState.LOADING
            and activation is self.activation
            and not activation.cancelled
        )

    def _on_fetch_succeeded(
        self, event: FetchSucceededEvent
    ) -> list[ConfirmationEffect]:
        if not self._is_current(event.activation):
            return []

        payment = event.payment
        if self.require_paid and not _is_paid(payment):
            self._fail(PaymentIncomplete(payment.payment_status))
            return []

        self.state = ConfirmationState.CONFIRMED
        self.payment = payment
        effects: list[ConfirmationEffect] = []
        if not self.cart_reset:
            self.cart_reset = True
            effects.append(ResetCart())
        effects.append(ScheduleNavigation(self.home_url, self.redirect_delay))
        return effects

    def _on_fetch_failed(self, event: FetchFailedEvent) -> list[ConfirmationEffect]:
        if not self._is_current(event.activation):
            return []
        self._fail(event.error)
        return []

    def _on_teardown(self) -> list[ConfirmationEffect]:
        self.torn_down = True
        if self.state == ConfirmationState.LOADING and self.activation is not None:
            return [CancelFetch(self.activation)]
        if self.state == ConfirmationState.CONFIRMED:
            return [CancelNavigation()]
        return []

    def _on_return_home(self) -> list[ConfirmationEffect]:
        if self.state in (ConfirmationState.CONFIRMED, ConfirmationState.FAILED):
            return [CancelNavigation(), Navigate(self.home_url)]
        return []

    def _fail(self, error: CheckoutError) -> None:
        self.state = ConfirmationState.FAILED
        self.error = error


def _is_paid(payment: ConfirmedPayment) -> bool:
    # Older API versions omit payment_status; their records only exist once paid
    return payment.payment_status is None or payment.payment_status in PAID_STATUSES


# =============================================================================
# Runtime
# =============================================================================


class ConfirmationView:
    """
    Confirmation view bound to the running event loop.

    Usage:
        async with ConfirmationView(client, cart, credentials, navigator) as view:
            view.mount(request.GET)
            state = await view.wait()

    Leaving the ``async with`` block tears the view down: an in-flight fetch
    is cancelled without any state change, and a pending navigation timer is
    cancelled.
    """

    def __init__(
        self,
        client: CheckoutAPIClient,
        cart: CartStore,
        credentials: CredentialProvider,
        navigator: Navigator,
        *,
        home_url: str = DEFAULT_HOME_URL,
        redirect_delay: float = DEFAULT_REDIRECT_DELAY,
        require_paid: bool = True,
    ) -> None:
        self.client = client
        self.cart = cart
        self.credentials = credentials
        self.navigator = navigator
        self.machine = ConfirmationMachine(
            home_url=home_url,
            redirect_delay=redirect_delay,
            require_paid=require_paid,
        )
        self._fetch_task: asyncio.Task[None] | None = None
        self._navigation: asyncio.TimerHandle | None = None

    async def __aenter__(self) -> "ConfirmationView":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.teardown()

    @property
    def state(self) -> ConfirmationState:
        return self.machine.state

    @property
    def payment(self) -> ConfirmedPayment | None:
        return self.machine.payment

    @property
    def error(self) -> CheckoutError | None:
        return self.machine.error

    @property
    def navigation_deadline(self) -> float | None:
        """Event loop time at which the automatic navigation fires, if scheduled."""
        if self._navigation is None or self._navigation.cancelled():
            return None
        return self._navigation.when()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def mount(self, query_params: Mapping[str, Any]) -> None:
        """
        Activate the view for a return URL's query parameters.

        Must be called from a running event loop. Calling it again (for
        example because the customer's token was refreshed) is safe: a
        confirmed view does not fetch or reset the cart again.
        """
        session_id = str(query_params.get("session_id") or "").strip() or None
        self._dispatch(MountEvent(session_id, self.credentials.get_token()))

    async def wait(self) -> ConfirmationState:
        """Wait until no fetch is in flight and return the resulting state."""
        while self._fetch_task is not None and not self._fetch_task.done():
            task = self._fetch_task
            await asyncio.wait({task})
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()  # type: ignore[misc]
        return self.state

    def teardown(self) -> None:
        """Deactivate the view, cancelling outstanding work."""
        self._dispatch(TeardownEvent())

    def return_home(self) -> None:
        """Navigate home now instead of waiting for the timer."""
        self._dispatch(ReturnHomeEvent())

    def display(self) -> dict[str, Any]:
        """What the customer sees for the current state."""
        match self.state, self.payment, self.error:
            case ConfirmationState.CONFIRMED, ConfirmedPayment() as payment, _:
                return {
                    "state": self.state.value,
                    "title": "Payment Successful",
                    "session_id": payment.id,
                    "customer_email": payment.customer_email,
                    "amount_total": payment.amount_total,
                    "currency": payment.currency,
                    "amount_display": format_amount(
                        payment.amount_total, payment.currency
                    ),
                    "redirect": {
                        "url": self.machine.home_url,
                        "after_seconds": self.machine.redirect_delay,
                    },
                }
            case ConfirmationState.FAILED, _, CheckoutError() as error:
                return {
                    "state": self.state.value,
                    "code": error.code.value,
                    "error": error.message,
                }
            case ConfirmationState.CONFIRMED | ConfirmationState.FAILED, _, _:
                raise RuntimeError(
                    f"Confirmation is {self.state.value} without a payment or error"
                )
            case _:
                return {"state": self.state.value, "message": LOADING_MESSAGE}

    # =========================================================================
    # Effects
    # =========================================================================

    def _dispatch(self, event: ConfirmationEvent) -> None:
        previous = self.machine.state
        effects = self.machine.dispatch(event)
        if self.machine.state != previous:
            logger.info(
                "Checkout confirmation %s -> %s",
                previous.value,
                self.machine.state.value,
            )
        for effect in effects:
            self._apply(effect)

    def _apply(self, effect: ConfirmationEffect) -> None:
        match effect:
            case StartFetch():
                task = asyncio.get_running_loop().create_task(self._fetch(effect))
                self._fetch_task = effect.activation.bind(task)
            case CancelFetch():
                logger.debug("Cancelling confirmation fetch %r", effect.activation)
                effect.activation.cancel()
            case ResetCart():
                self.cart.reset()
            case ScheduleNavigation():
                self._cancel_navigation()
                self._navigation = asyncio.get_running_loop().call_later(
                    effect.delay, self._navigate, effect.url
                )
            case CancelNavigation():
                self._cancel_navigation()
            case Navigate():
                self._navigate(effect.url)

    async def _fetch(self, effect: StartFetch) -> None:
        try:
            payment = await self.client.get_session(
                effect.session_id, effect.token, cancel_token=effect.activation
            )
        except asyncio.CancelledError:
            logger.debug("Confirmation fetch for %s cancelled", effect.session_id)
            raise
        except CheckoutError as e:
            self._dispatch(FetchFailedEvent(effect.activation, e))
        else:
            self._dispatch(FetchSucceededEvent(effect.activation, payment))

    def _cancel_navigation(self) -> None:
        if self._navigation is not None:
            self._navigation.cancel()
            self._navigation = None

    def _navigate(self, url: str) -> None:
        self._navigation = None
        try:
            self.navigator.navigate(url)
        except NavigationError as e:
            logger.warning("Navigation to %s failed: %s", url, e)
