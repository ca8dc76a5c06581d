# provide dataclass models

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class SessionStatus(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"
    EXPIRED = "expired"


class SyncStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"


@dataclass(frozen=True)
class UserProfile:
    id: str
    email: str
    name: str
    picture: str = ""
    role: str = "user"  # "user" or "admin"
    is_university_student: bool = False
    university_domain: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> UserProfile:
        """Parse the server's user object.

        /api/auth/google sends `id`, /api/auth/verify sends the decoded token
        which names it `userId`. Persisted copies use the snake_case fields.
        Raises ValueError when id or email is missing.
        """
        if not isinstance(data, dict):
            raise ValueError("user must be an object")
        uid = data.get("id") or data.get("userId")
        email = data.get("email")
        if not uid or not email:
            raise ValueError("user is missing id or email")
        return cls(
            id=str(uid),
            email=str(email),
            name=str(data.get("name") or ""),
            picture=str(data.get("picture") or ""),
            role=str(data.get("role") or "user"),
            is_university_student=bool(
                data.get("isUniversityStudent", data.get("is_university_student"))
            ),
            university_domain=data.get(
                "universityDomain", data.get("university_domain")
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Session:
    status: SessionStatus
    token: Optional[str] = None
    user: Optional[UserProfile] = None

    @property
    def is_authenticated(self) -> bool:
        # token stays valid while a refresh is in flight
        return self.token is not None and self.status in (
            SessionStatus.AUTHENTICATED,
            SessionStatus.REFRESHING,
        )


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    price: float
    original_price: Optional[float] = None
    image_url: str = ""
    category_name: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Product:
        images = data.get("images")
        image_url = data.get("imageUrl") or ""
        if not image_url and isinstance(images, list) and images:
            image_url = str(images[0])
        original = data.get("originalPrice")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            price=float(data["price"]),
            original_price=float(original) if original is not None else None,
            image_url=image_url,
            category_name=str(data.get("categoryName") or ""),
        )


@dataclass(frozen=True)
class CartItem:
    product_id: str
    name: str
    unit_price: float
    quantity: int
    original_price: Optional[float] = None
    image_ref: str = ""
    category_name: str = ""
    added_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_product(cls, product: Product, quantity: int) -> CartItem:
        return cls(
            product_id=product.id,
            name=product.name,
            unit_price=product.price,
            quantity=quantity,
            original_price=product.original_price,
            image_ref=product.image_url,
            category_name=product.category_name,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CartItem:
        """Parse one entry of GET /api/cart's cartItems."""
        original = data.get("originalPrice")
        added_at = data.get("addedAt")
        try:
            added = (
                datetime.fromisoformat(str(added_at).replace("Z", "+00:00"))
                if added_at
                else datetime.now()
            )
        except ValueError:
            added = datetime.now()
        return cls(
            product_id=str(data["productId"]),
            name=str(data.get("productName") or data.get("name") or ""),
            unit_price=float(data["price"]),
            quantity=int(data["quantity"]),
            original_price=float(original) if original is not None else None,
            image_ref=str(data.get("imageUrl") or ""),
            category_name=str(data.get("categoryName") or ""),
            added_at=added,
        )

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class CartState:
    """
    Snapshot of the cart handed to observers.
    Totals are computed from items by the cart store, never set on their own.
    """

    items: Tuple[CartItem, ...] = ()
    total_items: int = 0
    total_price: float = 0.0
    sync_status: SyncStatus = SyncStatus.IDLE
