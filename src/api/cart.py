from typing import List
from urllib.parse import quote

from api.client import ApiClient, TokenProvider
from db.models import CartItem
from utils.errors import RemoteOperationFailed


class CartClient:
    """
    Remote cart operations. Each call reads the current session token from
    token_provider, so a refreshed token is picked up without rewiring.
    Success returns normally; any failure raises RemoteOperationFailed.
    """

    def __init__(self, api: ApiClient, token_provider: TokenProvider) -> None:
        self._api = api
        self._token = token_provider

    async def fetch(self) -> List[CartItem]:
        data = await self._api.request("GET", "/api/cart", token=self._token())
        raw_items = data.get("cartItems")
        if not isinstance(raw_items, list):
            raise RemoteOperationFailed("Malformed response: cartItems missing")
        try:
            return [CartItem.from_dict(item) for item in raw_items]
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteOperationFailed(f"Malformed cart item: {e!r}") from e

    async def add(self, product_id: str, quantity: int) -> None:
        await self._api.request(
            "POST",
            "/api/cart/add",
            token=self._token(),
            json={"productId": product_id, "quantity": quantity},
        )

    async def remove(self, product_id: str) -> None:
        await self._api.request(
            "DELETE",
            f"/api/cart/remove/{quote(product_id, safe='')}",
            token=self._token(),
        )

    async def update(self, product_id: str, quantity: int) -> None:
        await self._api.request(
            "PUT",
            "/api/cart/update",
            token=self._token(),
            json={"productId": product_id, "quantity": quantity},
        )

    async def clear(self) -> None:
        await self._api.request("DELETE", "/api/cart/clear", token=self._token())
