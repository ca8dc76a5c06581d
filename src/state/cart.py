from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from api.cart import CartClient
from db.models import CartItem, CartState, Product, Session, SessionStatus, SyncStatus
from state.observable import Listener, Observable
from state.session import SessionManager
from state.sink import LOGIN_ROUTE, NotificationSink
from utils.errors import (
    AuthRequiredError,
    RemoteOperationFailed,
    SessionInvalid,
    ValidationError,
)
from utils.logger import get_logger
from utils.pure import cart_totals

_logger = get_logger(__name__)


@dataclass(frozen=True)
class _Undo:
    """
    What the slot of product_id held before the latest local change.
    previous=None means the change inserted the item.
    """

    product_id: str
    previous: Optional[CartItem]
    index: int


@dataclass
class _ItemSync:
    last_issued: int = 0
    last_applied: int = 0
    undo: Optional[_Undo] = None


def _check_quantity(quantity, minimum: int) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("Quantity must be a whole number.")
    if quantity < minimum:
        raise ValidationError(f"Quantity must be at least {minimum}.")
    return quantity


async def _settled(result: bool) -> bool:
    return result


class CartStore:
    """
    Optimistic cart kept in step with the server.

    Every mutation is applied locally first, then sent to the backend tagged
    with a per-product sequence number. A failed call is compensated only when
    it is still the latest one issued for that product; responses for older
    calls are discarded. Mutations require an authenticated session, there is
    no guest cart.
    """

    def __init__(
        self,
        session: SessionManager,
        remote: CartClient,
        sink: NotificationSink,
    ) -> None:
        self._session = session
        self._remote = remote
        self._sink = sink

        self._items: List[CartItem] = []
        self._total_items = 0
        self._total_price = 0.0
        self._sync_status = SyncStatus.IDLE

        self._tracks: Dict[str, _ItemSync] = {}
        # bumped on every reset; responses from an older generation are dropped
        self._generation = 0
        self._was_authenticated = session.is_authenticated

        self._changes: Observable[CartState] = Observable()
        session.subscribe(self._on_session_changed)

    # ---------------------------
    # Read access
    # ---------------------------

    @property
    def items(self) -> Tuple[CartItem, ...]:
        return tuple(self._items)

    @property
    def total_items(self) -> int:
        return self._total_items

    @property
    def total_price(self) -> float:
        return self._total_price

    @property
    def sync_status(self) -> SyncStatus:
        return self._sync_status

    @property
    def state(self) -> CartState:
        return CartState(
            items=tuple(self._items),
            total_items=self._total_items,
            total_price=self._total_price,
            sync_status=self._sync_status,
        )

    def get_item(self, product_id: str) -> Optional[CartItem]:
        return self._find(product_id)[1]

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """listener(CartState) runs synchronously after every local change."""
        return self._changes.subscribe(listener)

    # ---------------------------
    # Server sync
    # ---------------------------

    async def refresh(self) -> bool:
        """Replace the local cart with the server's copy."""
        if not self._session.is_authenticated:
            return False

        generation = self._generation
        self._sync_status = SyncStatus.LOADING
        self._changed()
        try:
            fetched = await self._remote.fetch()
        except RemoteOperationFailed as e:
            if self._ended(generation):
                return False
            _logger.warning(f"Cart fetch failed: {e}")
            self._sync_status = SyncStatus.IDLE
            self._changed()
            self._sink.report(RemoteOperationFailed("Failed to load your cart."))
            if isinstance(e, SessionInvalid):
                await self._session.mark_expired()
            return False

        if self._ended(generation):
            _logger.info("Discarding cart fetched for a previous session.")
            return False

        merged: List[CartItem] = []
        positions: Dict[str, int] = {}
        for item in fetched:
            if item.quantity <= 0:
                continue
            if item.product_id in positions:
                idx = positions[item.product_id]
                merged[idx] = replace(
                    merged[idx], quantity=merged[idx].quantity + item.quantity
                )
            else:
                positions[item.product_id] = len(merged)
                merged.append(item)

        self._supersede_all()
        self._items = merged
        self._sync_status = SyncStatus.IDLE
        self._changed()
        _logger.info(f"Cart loaded with {len(merged)} item(s).")
        return True

    async def _on_session_changed(self, session: Session) -> None:
        # snapshots arrive in order, judge each by itself
        now = session.is_authenticated
        was = self._was_authenticated
        self._was_authenticated = now

        if now and not was:
            await self.refresh()
        elif was and not now:
            self._reset()
            if session.status == SessionStatus.EXPIRED:
                self._sink.notify(
                    "Your session has expired. Please login again.", severity="warning"
                )
                self._sink.redirect(LOGIN_ROUTE)

    # ---------------------------
    # Mutations
    #
    # Each mutation checks the session, validates and applies the local
    # change before it returns. Only the server call is left in the returned
    # awaitable, so back-to-back actions see each other's changes even when
    # nobody has awaited the first one yet.
    # ---------------------------

    def add_item(self, product: Product, quantity: int = 1) -> Awaitable[bool]:
        """
        Add quantity of product, merging into an existing line.
        The awaitable resolves True once the server confirmed the change.
        """
        if not self._require_session():
            return _settled(False)
        _check_quantity(quantity, 1)

        idx, current = self._find(product.id)
        if current is not None:
            self._items[idx] = replace(current, quantity=current.quantity + quantity)
        else:
            idx = len(self._items)
            self._items.append(CartItem.from_product(product, quantity))
        self._changed()

        return self._sync(
            _Undo(product.id, current, idx),
            lambda: self._remote.add(product.id, quantity),
            "Failed to add item to cart.",
        )

    def remove_item(self, product_id: str) -> Awaitable[bool]:
        if not self._require_session():
            return _settled(False)

        idx, current = self._find(product_id)
        if current is None:
            _logger.debug(f"Remove of {product_id} ignored, not in cart.")
            return _settled(False)
        del self._items[idx]
        self._changed()

        return self._sync(
            _Undo(product_id, current, idx),
            lambda: self._remote.remove(product_id),
            "Failed to remove item from cart.",
        )

    def update_quantity(self, product_id: str, quantity: int) -> Awaitable[bool]:
        """Set the quantity of a line already in the cart; 0 removes it."""
        if not self._require_session():
            return _settled(False)
        _check_quantity(quantity, 0)

        idx, current = self._find(product_id)
        if current is None:
            raise ValidationError("Item is not in your cart.")
        if quantity == 0:
            return self.remove_item(product_id)

        self._items[idx] = replace(current, quantity=quantity)
        self._changed()

        return self._sync(
            _Undo(product_id, current, idx),
            lambda: self._remote.update(product_id, quantity),
            "Failed to update cart.",
        )

    def change_quantity(self, product_id: str, delta: int) -> Awaitable[bool]:
        """Shift a line's quantity by delta from whatever it holds right now."""
        if not self._require_session():
            return _settled(False)
        current = self.get_item(product_id)
        if current is None:
            raise ValidationError("Item is not in your cart.")
        return self.update_quantity(product_id, max(current.quantity + delta, 0))

    def clear(self) -> Awaitable[bool]:
        """Empty the cart. Not restored if the server call fails."""
        if not self._require_session():
            return _settled(False)

        self._supersede_all()
        self._items.clear()
        self._changed()
        return self._clear_remote(self._generation)

    # ---------------------------
    # Internals
    # ---------------------------

    def _require_session(self) -> bool:
        if self._session.is_authenticated:
            return True
        _logger.info("Cart change dropped, login required.")
        self._sink.report(AuthRequiredError())
        self._sink.redirect(LOGIN_ROUTE)
        return False

    def _ended(self, generation: int) -> bool:
        # the session this call belonged to is over, even if the reset
        # that follows has not run yet
        return generation != self._generation or not self._session.is_authenticated

    async def _clear_remote(self, generation: int) -> bool:
        try:
            await self._remote.clear()
        except RemoteOperationFailed as e:
            if not self._ended(generation):
                _logger.warning(f"Remote clear failed: {e}")
                self._sink.report(RemoteOperationFailed("Failed to clear cart."))
                if isinstance(e, SessionInvalid):
                    await self._session.mark_expired()
            return False
        return True

    def _sync(
        self,
        undo: _Undo,
        call: Callable[[], Awaitable[None]],
        failure_message: str,
    ) -> Awaitable[bool]:
        # sequence numbers are taken in action order, not await order
        track = self._tracks.setdefault(undo.product_id, _ItemSync())
        track.last_issued += 1
        track.undo = undo
        return self._send(
            undo.product_id, self._generation, track.last_issued, call, failure_message
        )

    async def _send(
        self,
        product_id: str,
        generation: int,
        seq: int,
        call: Callable[[], Awaitable[None]],
        failure_message: str,
    ) -> bool:
        try:
            await call()
        except RemoteOperationFailed as e:
            if self._ended(generation):
                _logger.info(f"Ignoring failure for {product_id} from an ended session.")
                return False
            self._compensate(product_id, seq, e)
            self._sink.report(RemoteOperationFailed(failure_message, e.status_code))
            if isinstance(e, SessionInvalid):
                await self._session.mark_expired()
            return False

        if self._ended(generation):
            return False
        track = self._tracks.get(product_id)
        if track is None or seq < track.last_applied:
            _logger.debug(f"Stale response #{seq} for {product_id} discarded.")
            return False
        track.last_applied = seq
        return True

    def _compensate(self, product_id: str, seq: int, error: RemoteOperationFailed) -> None:
        track = self._tracks.get(product_id)
        if track is None or seq != track.last_issued or track.undo is None:
            _logger.info(
                f"Call #{seq} for {product_id} failed ({error}) but was superseded."
            )
            return

        undo = track.undo
        idx, current = self._find(product_id)
        if undo.previous is None:
            if current is not None:
                del self._items[idx]
        elif current is not None:
            self._items[idx] = undo.previous
        else:
            self._items.insert(min(undo.index, len(self._items)), undo.previous)

        track.undo = None
        track.last_applied = seq
        self._changed()
        _logger.warning(f"Call #{seq} for {product_id} failed ({error}), reverted.")

    def _supersede_all(self) -> None:
        # outstanding calls must no longer compensate
        for track in self._tracks.values():
            track.last_issued += 1
            track.undo = None

    def _reset(self) -> None:
        self._generation += 1
        self._tracks.clear()
        self._items = []
        self._sync_status = SyncStatus.IDLE
        self._changed()
        _logger.info("Cart cleared locally.")

    def _find(self, product_id: str) -> Tuple[int, Optional[CartItem]]:
        for idx, item in enumerate(self._items):
            if item.product_id == product_id:
                return idx, item
        return -1, None

    def _changed(self) -> None:
        self._total_items, self._total_price = cart_totals(self._items)
        self._changes.emit_nowait(self.state)
