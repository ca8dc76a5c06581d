from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, HorizontalGroup, VerticalScroll
from textual.message import Message
from textual.widgets import Button, Label, Rule

from db.models import CartItem, CartState, SyncStatus
from utils.messages import CartChangedMessage
from utils.pure import format_price
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal
from views.modal_prod_detail import ProdDetailModal


class CartItemAction(Message):
    bubble = True

    def __init__(self, product_id: str, action: str) -> None:
        super().__init__()
        self.product_id = product_id
        self.action = action


class CartItemActionLabel(Label):
    def __init__(self, product_id: str, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.product_id = product_id

    def action_inc(self):
        self.post_message(CartItemAction(self.product_id, "inc"))

    def action_dec(self):
        self.post_message(CartItemAction(self.product_id, "dec"))

    def action_remove(self):
        self.post_message(CartItemAction(self.product_id, "remove"))


class CartItemWidget(HorizontalGroup):
    def __init__(self, item: CartItem):
        super().__init__()
        self.item = item

    def compose(self):
        item = self.item
        with Container(classes="div-item"):
            yield Label(item.name, classes="label-item-name")
            yield Label(item.category_name, classes="label-item-category")
            yield Label(f"x{item.quantity}", classes="label-item-qty")
            yield Label(format_price(item.line_total), classes="label-item-price")
        yield CartItemActionLabel(
            item.product_id,
            "[@click=inc()]+[/]  [@click=dec()]-[/]  [@click=remove()]Remove[/]",
            classes="div-actions",
        )


class CartScreen(BaseScreen):
    """
    Cart contents with per-line actions. Renders whatever snapshot the
    CartStore last reported; every action goes through the store.
    """

    CSS = """
    CartItemWidget { height: 1; }
    .div-item { layout: horizontal; width: 1fr; height: 1; }
    .label-item-name { width: 1fr; }
    .label-item-category { width: 18; color: $text-muted; }
    .label-item-qty { width: 6; }
    .label-item-price { width: 12; }
    .div-actions { width: 22; }
    #vertscroll-content.no-items { display: none; }
    #hort-buttons { height: auto; }
    """

    def __init__(self) -> None:
        super().__init__(sub_title="Cart")

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield VerticalScroll(id="vertscroll-content")
        yield Label("Your cart is empty.", id="label-cart-empty")
        yield Label("Total: 0 items, $0.00", id="label-cart-total")
        yield Rule(line_style="dashed")
        with Horizontal(id="hort-buttons"):
            yield Button("Clear Cart", id="btn-clear-cart")
            yield Button("Refresh", id="btn-refresh")
            yield Button("Add Product", id="btn-add-product", variant="primary")

    async def on_mount(self):
        await self.render_cart(self.app.cart.state)

    @on(CartChangedMessage)
    async def handle_cart_change(self, message: CartChangedMessage):
        await self.render_cart(message.cart)

    async def render_cart(self, cart: CartState) -> None:
        content = self.query_one("#vertscroll-content")
        shown = [c.item for c in content.children if isinstance(c, CartItemWidget)]

        if shown != list(cart.items):
            await content.remove_children()
            await content.mount_all([CartItemWidget(item) for item in cart.items])

        content.set_class(not cart.items, "no-items")
        self.query_one("#label-cart-empty").display = not cart.items

        loading = " (syncing...)" if cart.sync_status == SyncStatus.LOADING else ""
        self.query_one("#label-cart-total").update(
            f"Total: {cart.total_items} items, {format_price(cart.total_price)}{loading}"
        )

    @on(CartItemAction)
    def handle_item_action(self, message: CartItemAction) -> None:
        cart = self.app.cart
        item = cart.get_item(message.product_id)
        if item is None:
            return
        pid = item.product_id
        if message.action == "inc":
            self.app.dispatch_cart(lambda: cart.change_quantity(pid, 1))
        elif message.action == "dec":
            # reaching 0 removes the line
            self.app.dispatch_cart(lambda: cart.change_quantity(pid, -1))
        elif message.action == "remove":
            self.app.dispatch_cart(
                lambda: cart.remove_item(pid), "Item removed from cart."
            )

    @on(Button.Pressed, "#btn-refresh")
    def handle_refresh(self) -> None:
        self.app.dispatch_cart(self.app.cart.refresh)

    @on(Button.Pressed, "#btn-add-product")
    def handle_add_product(self) -> None:
        self.app.push_screen(ProdDetailModal())

    @on(Button.Pressed, "#btn-clear-cart")
    @work()
    async def handle_clear_cart(self) -> None:
        if not self.app.cart.items:
            self.app.notify("Cart is empty.", severity="warning")
            return

        remove_confirmed = await self.app.push_screen_wait(
            DialogModal("Do you really want to remove all items from cart?", tone="error")
        )
        if remove_confirmed:
            self.app.dispatch_cart(self.app.cart.clear, "Cart cleared.")
