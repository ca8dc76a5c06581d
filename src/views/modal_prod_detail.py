from typing import Optional

from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.validation import Number
from textual.widgets import Button, Input, Label, MarkdownViewer

from db.models import Product
from utils.errors import RemoteOperationFailed
from utils.pure import format_price, generate_markdown_table


class ProdDetailModal(ModalScreen[bool]):
    """
    Look a product up by id, show it, and add it to the cart.
    Returns True if something was added.
    """

    CSS = """
    #input-prod-id { width: 30; }
    #input-order-qty { width: 10; }
    #btn-sub-qty { min-width: 4 }
    #btn-add-qty { min-width: 4 }
    """

    order_qty = reactive(1)

    def __init__(self, product_id: str = "") -> None:
        super().__init__()
        self._initial_id = product_id
        self._prod: Optional[Product] = None

    def compose(self) -> ComposeResult:
        with Horizontal(id="hort-prod-detail"):
            yield MarkdownViewer(
                "_Enter a product id to look it up._", show_table_of_contents=False
            )
            with Vertical():
                yield Label("Product ID")
                with Horizontal():
                    yield Input(value=self._initial_id, id="input-prod-id")
                    yield Button("Look up", id="btn-lookup")
                yield Label("Order Quantity")
                with Horizontal():
                    yield Button("-", id="btn-sub-qty")
                    yield Input(
                        value="1",
                        id="input-order-qty",
                        type="integer",
                        validators=[Number(minimum=1)],
                    )
                    yield Button("+", id="btn-add-qty")
                with Horizontal():
                    yield Button("Go Back", id="btn-quit")
                    yield Button(
                        "Add to Cart", id="btn-addcart", variant="primary", disabled=True
                    )

    def on_mount(self):
        self.query_one("#input-prod-id").focus()
        if self._initial_id:
            self.handle_lookup()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)
        elif event.key == "enter" and self.focused == self.query_one("#input-prod-id"):
            self.handle_lookup()

    @on(Button.Pressed, "#btn-lookup")
    @work(exclusive=True)
    async def handle_lookup(self) -> None:
        product_id = self.query_one("#input-prod-id", Input).value.strip()
        if not product_id:
            self.notify("Enter a product id first.", severity="warning")
            return

        try:
            self._prod = await self.app.catalog.get_product(product_id)
        except RemoteOperationFailed as e:
            self._prod = None
            self.query_one("#btn-addcart").disabled = True
            self.notify(e.message, severity="error")
            return

        prod = self._prod
        table_rows = [
            ["Name", prod.name],
            ["Category", prod.category_name or "-"],
            ["Price", format_price(prod.price)],
            ["Original price", format_price(prod.original_price)],
        ]
        md_table_str = generate_markdown_table(["Attribute", "Value"], table_rows, ["l", "l"])
        header_md = f"### Product Detail: {prod.name}\n\n"
        await self.query_one(MarkdownViewer).document.update(header_md + md_table_str)

        in_cart = self.app.cart.get_item(prod.id)
        add_btn = self.query_one("#btn-addcart")
        add_btn.disabled = False
        add_btn.label = "Add More" if in_cart else "Add to Cart"
        self.query_one("#input-order-qty").focus()

    def on_input_changed(self, message: Input.Changed) -> None:
        if (
            message.input.id == "input-order-qty"
            and message.input.is_valid
            and self.focused == message.input
        ):
            self.order_qty = int(message.value)

    def watch_order_qty(self, qty: int):
        self.query_one("#btn-sub-qty").disabled = qty <= 1
        self.query_one("#input-order-qty", Input).value = str(qty)

    @on(Button.Pressed, "#btn-add-qty")
    def handle_add_qty(self):
        self.order_qty += 1

    @on(Button.Pressed, "#btn-sub-qty")
    def handle_sub_qty(self):
        self.order_qty = max(1, self.order_qty - 1)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)

    @on(Button.Pressed, "#btn-addcart")
    def handle_addcart(self):
        if self._prod is None:
            return
        # runs on the app so closing this modal does not cancel the request
        prod, qty = self._prod, self.order_qty
        self.app.dispatch_cart(
            lambda: self.app.cart.add_item(prod, qty), f"{prod.name} added to cart."
        )
        self.dismiss(True)
