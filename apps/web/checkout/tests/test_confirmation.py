"""Tests for the checkout confirmation state machine and view."""

import asyncio

import httpx
import pytest
import pytest_asyncio

from storefront_schemas import CheckoutErrorCode, ConfirmationState

from apps.web.checkout.cancellation import CancellationToken
from apps.web.checkout.client import CheckoutAPIClient
from apps.web.checkout.confirmation import (
    CancelFetch,
    CancelNavigation,
    ConfirmationMachine,
    ConfirmationView,
    FetchFailedEvent,
    FetchSucceededEvent,
    MountEvent,
    Navigate,
    ResetCart,
    ReturnHomeEvent,
    ScheduleNavigation,
    StartFetch,
    TeardownEvent,
)
from apps.web.checkout.exceptions import FetchFailed, MissingSession, Unauthenticated
from apps.web.checkout.gateways import NavigationError, RecordingNavigator

from .factories import ConfirmedPaymentFactory

API_URL = "https://api.storefront.test"

PAID_RECORD = {
    "id": "cs_test_123",
    "amount_total": 4599,
    "currency": "usd",
    "customer_details": {"email": "a@b.com"},
    "payment_status": "paid",
}


# =============================================================================
# Fixtures
# =============================================================================


class FakeAPI:
    """
    Ordering API double for httpx.MockTransport.

    Responses can be held back with ``hold()`` until ``release()`` is called.
    """

    def __init__(self, status: int = 200, json=PAID_RECORD, text: str | None = None):
        self.status = status
        self.json = json
        self.text = text
        self.requests: list[httpx.Request] = []
        self._gate: asyncio.Event | None = None
        self.started = asyncio.Event()

    def hold(self) -> None:
        self._gate = asyncio.Event()

    def release(self) -> None:
        if self._gate is not None:
            self._gate.set()

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.started.set()
        if self._gate is not None:
            await self._gate.wait()
        if self.text is not None:
            return httpx.Response(self.status, text=self.text)
        return httpx.Response(self.status, json=self.json)


class MutableCredentials:
    def __init__(self, token: str | None) -> None:
        self.token = token

    def get_token(self) -> str | None:
        return self.token


@pytest.fixture
def navigator() -> RecordingNavigator:
    return RecordingNavigator()


@pytest.fixture
def resets(cart) -> list[tuple]:
    """Snapshots published by the cart, one per mutation."""
    published: list[tuple] = []
    cart.subscribe(published.append)
    return published


@pytest_asyncio.fixture
async def make_view():
    """Build confirmation views backed by a FakeAPI; their HTTP clients are closed after."""
    http_clients: list[httpx.AsyncClient] = []

    def _make_view(api, cart, credentials, navigator, **kwargs) -> ConfirmationView:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(api))
        http_clients.append(http_client)
        client = CheckoutAPIClient(API_URL, http_client=http_client)
        return ConfirmationView(client, cart, credentials, navigator, **kwargs)

    yield _make_view
    for http_client in http_clients:
        await http_client.aclose()


# =============================================================================
# State machine
# =============================================================================


class TestConfirmationMachine:
    """Tests for the pure transition table."""

    def test_initial_state(self):
        machine = ConfirmationMachine()

        assert machine.state == ConfirmationState.AWAITING_PARAMS
        assert machine.payment is None
        assert machine.error is None

    def test_mount_without_session_fails_without_fetch(self):
        machine = ConfirmationMachine()

        effects = machine.dispatch(MountEvent(None, "tok"))

        assert effects == []
        assert machine.state == ConfirmationState.FAILED
        assert isinstance(machine.error, MissingSession)
        assert machine.error.message == "No payment session found."

    def test_missing_session_reported_before_missing_token(self):
        machine = ConfirmationMachine()

        machine.dispatch(MountEvent(None, None))

        assert isinstance(machine.error, MissingSession)

    def test_mount_without_token_fails_without_fetch(self):
        machine = ConfirmationMachine()

        effects = machine.dispatch(MountEvent("cs_1", None))

        assert effects == []
        assert isinstance(machine.error, Unauthenticated)

    def test_mount_starts_fetch(self):
        machine = ConfirmationMachine()

        effects = machine.dispatch(MountEvent("cs_1", "tok"))

        assert machine.state == ConfirmationState.LOADING
        assert effects == [StartFetch("cs_1", "tok", machine.activation)]

    def test_success_resets_cart_and_schedules_navigation(self):
        machine = ConfirmationMachine(home_url="/menu", redirect_delay=5)
        machine.dispatch(MountEvent("cs_1", "tok"))
        payment = ConfirmedPaymentFactory()

        effects = machine.dispatch(FetchSucceededEvent(machine.activation, payment))

        assert machine.state == ConfirmationState.CONFIRMED
        assert machine.payment == payment
        assert effects == [ResetCart(), ScheduleNavigation("/menu", 5)]

    def test_failure_is_terminal(self):
        machine = ConfirmationMachine()
        machine.dispatch(MountEvent("cs_1", "tok"))
        error = FetchFailed("Error: Not found", status_code=404)

        effects = machine.dispatch(FetchFailedEvent(machine.activation, error))
        remount = machine.dispatch(MountEvent("cs_2", "tok"))

        assert effects == []
        assert remount == []
        assert machine.state == ConfirmationState.FAILED
        assert machine.error is error

    def test_precondition_failure_recovers_on_new_params(self):
        """A missing token can be supplied later (e.g. after login)."""
        machine = ConfirmationMachine()
        machine.dispatch(MountEvent("cs_1", None))

        effects = machine.dispatch(MountEvent("cs_1", "tok"))

        assert machine.state == ConfirmationState.LOADING
        assert machine.error is None
        assert isinstance(effects[0], StartFetch)

    def test_remount_with_same_params_while_loading_is_ignored(self):
        machine = ConfirmationMachine()
        machine.dispatch(MountEvent("cs_1", "tok"))

        assert machine.dispatch(MountEvent("cs_1", "tok")) == []

    def test_remount_with_new_params_cancels_previous_fetch(self):
        machine = ConfirmationMachine()
        machine.dispatch(MountEvent("cs_1", "tok"))
        first = machine.activation

        effects = machine.dispatch(MountEvent("cs_1", "refreshed"))

        assert effects[0] == CancelFetch(first)
        assert effects[1] == StartFetch("cs_1", "refreshed", machine.activation)
        assert machine.activation is not first

    def test_stale_result_is_ignored(self):
        machine = ConfirmationMachine()
        machine.dispatch(MountEvent("cs_1", "tok"))
        stale = machine.activation
        machine.dispatch(MountEvent("cs_2", "tok"))

        effects = machine.dispatch(FetchSucceededEvent(stale, ConfirmedPaymentFactory()))

        assert effects == []
        assert machine.state == ConfirmationState.LOADING

    def test_result_after_cancellation_is_ignored(self):
        machine = ConfirmationMachine()
        machine.dispatch(MountEvent("cs_1", "tok"))
        machine.activation.cancel()

        effects = machine.dispatch(
            FetchSucceededEvent(machine.activation, ConfirmedPaymentFactory())
        )

        assert effects == []
        assert machine.state == ConfirmationState.LOADING

    def test_remount_after_confirmation_is_noop(self):
        machine = ConfirmationMachine()
        machine.dispatch(MountEvent("cs_1", "tok"))
        machine.dispatch(FetchSucceededEvent(machine.activation, ConfirmedPaymentFactory()))

        assert machine.dispatch(MountEvent("cs_1", "refreshed")) == []
        assert machine.dispatch(MountEvent("cs_2", "tok")) == []
        assert machine.state == ConfirmationState.CONFIRMED

    def test_teardown_while_loading_cancels_without_state_change(self):
        machine = ConfirmationMachine()
        machine.dispatch(MountEvent("cs_1", "tok"))
        activation = machine.activation

        effects = machine.dispatch(TeardownEvent())

        assert effects == [CancelFetch(activation)]
        assert machine.state == ConfirmationState.LOADING
        assert machine.dispatch(
            FetchSucceededEvent(activation, ConfirmedPaymentFactory())
        ) == []

    def test_teardown_after_confirmation_cancels_navigation(self):
        machine = ConfirmationMachine()
        machine.dispatch(MountEvent("cs_1", "tok"))
        machine.dispatch(FetchSucceededEvent(machine.activation, ConfirmedPaymentFactory()))

        assert machine.dispatch(TeardownEvent()) == [CancelNavigation()]

    def test_return_home(self):
        machine = ConfirmationMachine(home_url="/home")
        assert machine.dispatch(ReturnHomeEvent()) == []

        machine.dispatch(MountEvent(None, "tok"))

        assert machine.dispatch(ReturnHomeEvent()) == [
            CancelNavigation(),
            Navigate("/home"),
        ]

    @pytest.mark.parametrize("status", ["unpaid", "open", "expired"])
    def test_unpaid_session_fails(self, status):
        machine = ConfirmationMachine()
        machine.dispatch(MountEvent("cs_1", "tok"))

        effects = machine.dispatch(
            FetchSucceededEvent(
                machine.activation, ConfirmedPaymentFactory(payment_status=status)
            )
        )

        assert effects == []
        assert machine.state == ConfirmationState.FAILED
        assert machine.error.code == CheckoutErrorCode.PAYMENT_INCOMPLETE
        assert machine.cart_reset is False

    @pytest.mark.parametrize("status", ["paid", "no_payment_required", None])
    def test_paid_statuses_confirm(self, status):
        machine = ConfirmationMachine()
        machine.dispatch(MountEvent("cs_1", "tok"))

        machine.dispatch(
            FetchSucceededEvent(
                machine.activation, ConfirmedPaymentFactory(payment_status=status)
            )
        )

        assert machine.state == ConfirmationState.CONFIRMED

    def test_payment_status_ignored_when_not_required(self):
        machine = ConfirmationMachine(require_paid=False)
        machine.dispatch(MountEvent("cs_1", "tok"))

        machine.dispatch(
            FetchSucceededEvent(
                machine.activation, ConfirmedPaymentFactory(payment_status="unpaid")
            )
        )

        assert machine.state == ConfirmationState.CONFIRMED

    def test_unknown_event(self):
        with pytest.raises(TypeError):
            ConfirmationMachine().dispatch(object())

    def test_events_after_teardown_are_ignored(self):
        machine = ConfirmationMachine()
        machine.dispatch(TeardownEvent())

        assert machine.dispatch(MountEvent("cs_1", "tok")) == []
        assert machine.state == ConfirmationState.AWAITING_PARAMS


# =============================================================================
# View runtime
# =============================================================================


class TestConfirmationView:
    """Tests for the asyncio confirmation view."""

    @pytest.mark.asyncio
    async def test_success(self, make_view, cart, credentials, navigator, resets):
        api = FakeAPI()
        loop = asyncio.get_running_loop()

        async with make_view(api, cart, credentials, navigator) as view:
            view.mount({"session_id": "cs_test_123"})
            state = await view.wait()

            assert state == ConfirmationState.CONFIRMED
            assert cart.is_empty
            assert resets == [()]
            remaining = view.navigation_deadline - loop.time()
            assert 9.0 < remaining <= 10.0
            assert view.display() == {
                "state": "confirmed",
                "title": "Payment Successful",
                "session_id": "cs_test_123",
                "customer_email": "a@b.com",
                "amount_total": 4599,
                "currency": "usd",
                "amount_display": "$45.99",
                "redirect": {"url": "/", "after_seconds": 10.0},
            }

        assert len(api.requests) == 1
        request = api.requests[0]
        assert request.url == f"{API_URL}/api/checkout/session/cs_test_123"
        assert request.headers["Authorization"] == "Bearer customer-token-abc"
        assert navigator.history == []

    @pytest.mark.asyncio
    async def test_missing_session_makes_no_request(self, make_view, cart, credentials, navigator):
        api = FakeAPI()

        async with make_view(api, cart, credentials, navigator) as view:
            view.mount({})
            state = await view.wait()

        assert state == ConfirmationState.FAILED
        assert view.display() == {
            "state": "failed",
            "code": "missing_session",
            "error": "No payment session found.",
        }
        assert api.requests == []
        assert len(cart) == 2

    @pytest.mark.asyncio
    async def test_blank_session_counts_as_missing(self, make_view, cart, credentials, navigator):
        api = FakeAPI()

        async with make_view(api, cart, credentials, navigator) as view:
            view.mount({"session_id": "   "})
            await view.wait()

        assert view.error.code == CheckoutErrorCode.MISSING_SESSION
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_missing_token_makes_no_request(self, make_view, cart, anonymous, navigator):
        api = FakeAPI()

        async with make_view(api, cart, anonymous, navigator) as view:
            view.mount({"session_id": "cs_test_123"})
            await view.wait()

        assert view.error.code == CheckoutErrorCode.UNAUTHENTICATED
        assert view.error.message == "You are not authenticated."
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_fetch_failure_keeps_cart(self, make_view, cart, credentials, navigator):
        api = FakeAPI(status=404, text="Not found")

        async with make_view(api, cart, credentials, navigator) as view:
            view.mount({"session_id": "cs_test_123"})
            state = await view.wait()

            assert view.navigation_deadline is None

        assert state == ConfirmationState.FAILED
        assert view.display()["error"] == "Error: Not found"
        assert len(cart) == 2

    @pytest.mark.asyncio
    async def test_malformed_record(self, make_view, cart, credentials, navigator):
        api = FakeAPI(json={"unexpected": True})

        async with make_view(api, cart, credentials, navigator) as view:
            view.mount({"session_id": "cs_test_123"})
            await view.wait()

        assert view.error.code == CheckoutErrorCode.MALFORMED_RESPONSE
        assert len(cart) == 2

    @pytest.mark.asyncio
    async def test_loading_display(self, make_view, cart, credentials, navigator):
        api = FakeAPI()
        api.hold()

        async with make_view(api, cart, credentials, navigator) as view:
            view.mount({"session_id": "cs_test_123"})

            assert view.display() == {
                "state": "loading",
                "message": "Loading payment details...",
            }
            api.release()
            await view.wait()

    @pytest.mark.parametrize(
        "state", [ConfirmationState.CONFIRMED, ConfirmationState.FAILED]
    )
    @pytest.mark.asyncio
    async def test_display_rejects_terminal_state_without_outcome(
        self, make_view, cart, credentials, navigator, state
    ):
        view = make_view(FakeAPI(), cart, credentials, navigator)
        view.machine.state = state

        with pytest.raises(RuntimeError, match="without a payment or error"):
            view.display()

    @pytest.mark.asyncio
    async def test_teardown_during_fetch_discards_result(
        self, make_view, cart, credentials, navigator, resets
    ):
        api = FakeAPI()
        api.hold()

        async with make_view(api, cart, credentials, navigator) as view:
            view.mount({"session_id": "cs_test_123"})
            await api.started.wait()

        api.release()
        state = await view.wait()
        await asyncio.sleep(0)

        assert state == ConfirmationState.LOADING
        assert view.payment is None
        assert resets == []
        assert len(cart) == 2
        assert view.navigation_deadline is None

    @pytest.mark.asyncio
    async def test_remount_with_same_params_fetches_once(
        self, make_view, cart, credentials, navigator, resets
    ):
        api = FakeAPI()
        api.hold()

        async with make_view(api, cart, credentials, navigator) as view:
            view.mount({"session_id": "cs_test_123"})
            await api.started.wait()
            view.mount({"session_id": "cs_test_123"})
            api.release()
            await view.wait()
            view.mount({"session_id": "cs_test_123"})
            await view.wait()

        assert len(api.requests) == 1
        assert resets == [()]

    @pytest.mark.asyncio
    async def test_token_refresh_after_confirmation_does_not_reset_again(
        self, make_view, cart, navigator, resets
    ):
        api = FakeAPI()
        credentials = MutableCredentials("first-token")

        async with make_view(api, cart, credentials, navigator) as view:
            view.mount({"session_id": "cs_test_123"})
            await view.wait()
            credentials.token = "refreshed-token"
            view.mount({"session_id": "cs_test_123"})
            await view.wait()

            assert view.state == ConfirmationState.CONFIRMED

        assert len(api.requests) == 1
        assert resets == [()]

    @pytest.mark.asyncio
    async def test_token_refresh_while_loading_refetches(self, make_view, cart, navigator, resets):
        api = FakeAPI()
        api.hold()
        credentials = MutableCredentials("first-token")

        async with make_view(api, cart, credentials, navigator) as view:
            view.mount({"session_id": "cs_test_123"})
            await api.started.wait()
            first = view.machine.activation
            credentials.token = "refreshed-token"
            view.mount({"session_id": "cs_test_123"})
            api.release()
            state = await view.wait()

        assert first.cancelled
        assert state == ConfirmationState.CONFIRMED
        assert [r.headers["Authorization"] for r in api.requests] == [
            "Bearer first-token",
            "Bearer refreshed-token",
        ]
        assert resets == [()]

    @pytest.mark.asyncio
    async def test_navigation_fires_after_delay(self, make_view, cart, credentials, navigator):
        api = FakeAPI()

        async with make_view(
            api, cart, credentials, navigator, home_url="/menu", redirect_delay=0.01
        ) as view:
            view.mount({"session_id": "cs_test_123"})
            await view.wait()
            await asyncio.sleep(0.05)

            assert navigator.history == ["/menu"]
            assert view.navigation_deadline is None

    @pytest.mark.asyncio
    async def test_teardown_cancels_navigation(self, make_view, cart, credentials, navigator):
        api = FakeAPI()

        async with make_view(
            api, cart, credentials, navigator, redirect_delay=0.01
        ) as view:
            view.mount({"session_id": "cs_test_123"})
            await view.wait()

        await asyncio.sleep(0.05)

        assert navigator.history == []
        assert view.navigation_deadline is None

    @pytest.mark.asyncio
    async def test_return_home_navigates_immediately(self, make_view, cart, credentials, navigator):
        api = FakeAPI()

        async with make_view(
            api, cart, credentials, navigator, redirect_delay=0.01
        ) as view:
            view.mount({"session_id": "cs_test_123"})
            await view.wait()
            view.return_home()
            await asyncio.sleep(0.05)

        assert navigator.history == ["/"]

    @pytest.mark.asyncio
    async def test_navigation_error_is_logged(self, make_view, cart, credentials, caplog):
        class BrokenNavigator:
            def navigate(self, url: str) -> None:
                raise NavigationError("window closed")

        api = FakeAPI()

        async with make_view(api, cart, credentials, BrokenNavigator()) as view:
            view.mount({"session_id": "cs_test_123"})
            await view.wait()
            view.return_home()

        assert "window closed" in caplog.text

    @pytest.mark.asyncio
    async def test_cancelled_token_cancels_bound_task(self):
        token = CancellationToken("test")
        task = token.bind(asyncio.get_running_loop().create_task(asyncio.sleep(10)))

        token.cancel()
        await asyncio.wait({task})

        assert task.cancelled()
