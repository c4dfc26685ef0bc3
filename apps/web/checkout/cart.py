"""
Cart store - the customer's line items for the current checkout.

The store holds an immutable snapshot of line items. Every mutation builds a
new snapshot under a lock, swaps it in, persists it and then notifies
subscribers, so readers never see a half-applied change.
"""

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from decimal import Decimal
from typing import Any, Protocol

from pydantic import BaseModel, ValidationError

from storefront_schemas import MAX_LINE_QUANTITY, CartLineItem

from apps.web.checkout.formatting import format_price

logger = logging.getLogger(__name__)

CART_SESSION_KEY = "cart"
EMPTY_CART_NOTICE = "Your cart is currently empty."

CartSnapshot = tuple[CartLineItem, ...]
CartSubscriber = Callable[[CartSnapshot], None]


class CartStorage(Protocol):
    """Persistence for a cart snapshot."""

    def load(self) -> list[CartLineItem]: ...

    def save(self, items: CartSnapshot) -> None: ...

    def clear(self) -> None: ...


class SessionCartStorage:
    """Persist the cart in a Django session as a list of JSON line items."""

    def __init__(self, session: Any, key: str = CART_SESSION_KEY) -> None:
        self.session = session
        self.key = key

    def load(self) -> list[CartLineItem]:
        items: list[CartLineItem] = []
        for raw in self.session.get(self.key, []):
            try:
                items.append(CartLineItem.model_validate(raw))
            except ValidationError:
                # Stale or tampered entries are dropped rather than breaking the page
                logger.warning("Dropping invalid cart line from session: %r", raw)
        return items

    def save(self, items: CartSnapshot) -> None:
        self.session[self.key] = [item.model_dump(mode="json") for item in items]
        self.session.modified = True

    def clear(self) -> None:
        if self.key in self.session:
            del self.session[self.key]
            self.session.modified = True


class CartStore:
    """
    Holds the set of line items to be purchased.

    Args:
        items: Initial line items (ignored when ``storage`` is given).
        storage: Optional persistence; loaded on creation and written on
            every mutation.
    """

    def __init__(
        self,
        items: Iterable[CartLineItem] = (),
        storage: CartStorage | None = None,
    ) -> None:
        self._storage = storage
        self._lock = threading.RLock()
        self._subscribers: list[CartSubscriber] = []
        initial = storage.load() if storage is not None else list(items)
        self._items: CartSnapshot = _merge_lines((), initial)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_items(self) -> CartSnapshot:
        """Current line items (an immutable snapshot)."""
        return self._items

    def get_item(self, item_id: str) -> CartLineItem | None:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    @property
    def is_empty(self) -> bool:
        return not self._items

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self._items)

    @property
    def total(self) -> Decimal:
        return cart_total(self._items)

    def __len__(self) -> int:
        return len(self._items)

    # =========================================================================
    # Mutations
    # =========================================================================

    def add(self, item: CartLineItem) -> CartSnapshot:
        """
        Add a line, merging quantities with an existing line of the same id.

        Raises:
            ValueError: If the quantity is not positive or the merged quantity
                exceeds the per-line maximum.
        """
        if item.quantity <= 0:
            raise ValueError(f"Quantity must be positive, got {item.quantity}")
        with self._lock:
            return self._commit(_merge_lines(self._items, [item]))

    def update_quantity(self, item_id: str, quantity: int) -> CartSnapshot:
        """
        Set a line's quantity. A quantity of zero or less removes the line.

        Raises:
            KeyError: If the line is not in the cart.
            ValueError: If the quantity exceeds the per-line maximum.
        """
        with self._lock:
            if self.get_item(item_id) is None:
                raise KeyError(item_id)
            _check_max_quantity(quantity)
            if quantity <= 0:
                return self._commit(
                    tuple(item for item in self._items if item.id != item_id)
                )
            return self._commit(
                tuple(
                    item.model_copy(update={"quantity": quantity})
                    if item.id == item_id
                    else item
                    for item in self._items
                )
            )

    def remove(self, item_id: str) -> CartSnapshot:
        """Remove a line. Removing an unknown id is a no-op."""
        with self._lock:
            if self.get_item(item_id) is None:
                return self._items
            return self._commit(
                tuple(item for item in self._items if item.id != item_id)
            )

    def reset(self) -> None:
        """Clear every line. Safe to call on an empty cart."""
        with self._lock:
            self._items = ()
            if self._storage is not None:
                self._storage.clear()
            logger.debug("Cart reset")
            self._notify(self._items)

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe(self, callback: CartSubscriber) -> Callable[[], None]:
        """
        Register a callback invoked with the new snapshot after each mutation.

        Returns:
            A function that removes the subscription.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _commit(self, items: CartSnapshot) -> CartSnapshot:
        self._items = items
        if self._storage is not None:
            self._storage.save(items)
        self._notify(items)
        return items

    def _notify(self, items: CartSnapshot) -> None:
        for callback in list(self._subscribers):
            try:
                callback(items)
            except Exception:
                logger.exception("Cart subscriber %r failed", callback)


def _merge_lines(
    existing: CartSnapshot, new_items: Iterable[CartLineItem]
) -> CartSnapshot:
    lines: dict[str, CartLineItem] = {item.id: item for item in existing}
    for item in new_items:
        if item.quantity <= 0:
            continue
        current = lines.get(item.id)
        if current is None:
            lines[item.id] = item
        else:
            quantity = current.quantity + item.quantity
            _check_max_quantity(quantity)
            lines[item.id] = current.model_copy(update={"quantity": quantity})
    return tuple(lines.values())


def _check_max_quantity(quantity: int) -> None:
    if quantity > MAX_LINE_QUANTITY:
        raise ValueError(
            f"Quantity must be at most {MAX_LINE_QUANTITY}, got {quantity}"
        )


def cart_total(items: Iterable[CartLineItem]) -> Decimal:
    """Exact sum of ``unit_price * quantity`` over all lines."""
    return sum((item.subtotal for item in items), Decimal("0"))


# =============================================================================
# Display
# =============================================================================


class CartLineSummary(BaseModel):
    """A cart line prepared for display."""

    id: str
    title: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    unit_price_display: str
    subtotal_display: str


class CartSummary(BaseModel):
    """Order summary shown before checkout."""

    lines: list[CartLineSummary]
    total: Decimal
    total_display: str
    item_count: int
    is_empty: bool
    can_checkout: bool
    notice: str | None = None


def summarize_cart(items: Iterable[CartLineItem]) -> CartSummary:
    """Build the order summary. An empty cart yields a notice and no checkout."""
    snapshot = tuple(items)
    total = cart_total(snapshot)
    lines = [
        CartLineSummary(
            id=item.id,
            title=item.product.display_title,
            quantity=item.quantity,
            unit_price=item.unit_price,
            subtotal=item.subtotal,
            unit_price_display=format_price(item.unit_price),
            subtotal_display=format_price(item.subtotal),
        )
        for item in snapshot
    ]
    return CartSummary(
        lines=lines,
        total=total,
        total_display=format_price(total),
        item_count=sum(item.quantity for item in snapshot),
        is_empty=not snapshot,
        can_checkout=bool(snapshot),
        notice=None if snapshot else EMPTY_CART_NOTICE,
    )


def parse_line_item(payload: Mapping[str, Any]) -> CartLineItem:
    """Validate a raw line item payload (raises pydantic ``ValidationError``)."""
    return CartLineItem.model_validate(payload)
