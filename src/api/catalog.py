from urllib.parse import quote

from api.client import ApiClient
from db.models import Product
from utils.errors import RemoteOperationFailed


class CatalogClient:
    """Public product lookup, used by the add-to-cart dialog."""

    def __init__(self, api: ApiClient) -> None:
        self._api = api

    async def get_product(self, product_id: str) -> Product:
        data = await self._api.request(
            "GET", f"/api/products/{quote(product_id, safe='')}"
        )
        try:
            return Product.from_dict(data["product"])
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteOperationFailed(f"Malformed product: {e!r}") from e
