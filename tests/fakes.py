"""
In-memory stand-ins for the storefront backend and the UI sink.
"""

import asyncio
import json
import os
import sys
import tempfile
import unittest
from typing import Dict, List, Optional, Tuple, Union

import httpx

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from api.auth import AuthClient  # noqa: E402
from api.cart import CartClient  # noqa: E402
from api.client import ApiClient  # noqa: E402
from db import database as db_database  # noqa: E402
from db.store import SessionStore  # noqa: E402
from state.cart import CartStore  # noqa: E402
from state.session import SessionManager  # noqa: E402

STUDENT = {
    "id": "google-123",
    "email": "ana@uni.example.edu",
    "name": "Ana Student",
    "picture": "https://example.com/ana.png",
    "role": "user",
    "isUniversityStudent": True,
    "universityDomain": "uni.example.edu",
}

PRODUCTS = {
    "p1": {
        "id": "p1",
        "name": "Noise Cancelling Headphones",
        "price": 100.0,
        "originalPrice": 150.0,
        "imageUrl": "https://img.example.com/p1.jpg",
        "categoryName": "Audio",
    },
    "p2": {
        "id": "p2",
        "name": "USB-C Hub",
        "price": 25.5,
        "originalPrice": None,
        "imageUrl": "https://img.example.com/p2.jpg",
        "categoryName": "Accessories",
    },
    "p3": {
        "id": "p3",
        "name": "Desk Lamp",
        "price": 12.0,
        "imageUrl": "",
        "categoryName": "Home",
    },
}

Failure = Union[int, Exception]
Key = Tuple[str, str]


class Gate:
    """Holds one request until release is set."""

    def __init__(self) -> None:
        self.arrived = asyncio.Event()
        self.release = asyncio.Event()


class FakeBackend:
    """
    Minimal backend speaking the storefront's JSON contract.

    fail() makes the next matching request(s) fail, decided when the request
    arrives. hold() parks the next matching request until its gate is released,
    which lets a test deliver responses out of order.
    """

    def __init__(self) -> None:
        self.credentials: Dict[str, dict] = {"good-credential": dict(STUDENT)}
        self.tokens: Dict[str, dict] = {}
        self.products = {k: dict(v) for k, v in PRODUCTS.items()}
        self.cart: Dict[str, int] = {}
        self.requests: List[Key] = []
        self.auth_headers: List[Optional[str]] = []
        self._failures: Dict[Key, List[Failure]] = {}
        self._always_fail: Dict[Key, Failure] = {}
        self._gates: Dict[Key, List[Gate]] = {}
        self._issued = 0
        self.transport = httpx.MockTransport(self.handle)

    # ----- test controls -----

    def issue_token(self, user: Optional[dict] = None) -> str:
        self._issued += 1
        token = f"token-{self._issued}"
        self.tokens[token] = dict(user or STUDENT)
        return token

    def fail(self, method: str, path: str, failure: Failure = 500, always=False):
        if always:
            self._always_fail[(method, path)] = failure
        else:
            self._failures.setdefault((method, path), []).append(failure)

    def hold(self, method: str, path: str) -> Gate:
        gate = Gate()
        self._gates.setdefault((method, path), []).append(gate)
        return gate

    def count(self, method: str, path: str) -> int:
        return self.requests.count((method, path))

    # ----- transport -----

    async def handle(self, request: httpx.Request) -> httpx.Response:
        key = (request.method, request.url.path)
        self.requests.append(key)
        self.auth_headers.append(request.headers.get("Authorization"))

        failure = self._always_fail.get(key)
        if failure is None and self._failures.get(key):
            failure = self._failures[key].pop(0)

        gates = self._gates.get(key)
        if gates:
            gate = gates.pop(0)
            gate.arrived.set()
            await gate.release.wait()

        if isinstance(failure, Exception):
            raise failure
        if failure is not None:
            return httpx.Response(failure, json={"success": False, "error": "boom"})
        return self.route(request)

    def _user_for(self, request: httpx.Request) -> Optional[dict]:
        header = request.headers.get("Authorization", "")
        if not header.startswith("Bearer "):
            return None
        return self.tokens.get(header.removeprefix("Bearer "))

    def route(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        body = json.loads(request.content) if request.content else {}

        if (method, path) == ("POST", "/api/auth/google"):
            user = self.credentials.get(body.get("credential"))
            if user is None:
                return httpx.Response(
                    401, json={"success": False, "error": "Authentication failed"}
                )
            token = self.issue_token(user)
            return httpx.Response(200, json={"success": True, "token": token, "user": user})

        if method == "GET" and path.startswith("/api/products/"):
            product = self.products.get(path.removeprefix("/api/products/"))
            if product is None:
                return httpx.Response(
                    404, json={"success": False, "error": "Product not found"}
                )
            return httpx.Response(200, json={"success": True, "product": product})

        user = self._user_for(request)
        if user is None:
            return httpx.Response(
                401, json={"success": False, "error": "Invalid or expired token"}
            )

        if (method, path) == ("GET", "/api/auth/verify"):
            decoded = {k: v for k, v in user.items() if k != "id"}
            decoded["userId"] = user["id"]
            return httpx.Response(200, json={"success": True, "user": decoded})
        if (method, path) == ("POST", "/api/auth/refresh"):
            return httpx.Response(200, json={"success": True, "token": self.issue_token(user)})
        if (method, path) == ("POST", "/api/auth/logout"):
            return httpx.Response(200, json={"success": True})

        if (method, path) == ("GET", "/api/cart"):
            items = [
                {
                    "productId": pid,
                    "productName": self.products[pid]["name"],
                    "price": self.products[pid]["price"],
                    "originalPrice": self.products[pid].get("originalPrice"),
                    "imageUrl": self.products[pid].get("imageUrl"),
                    "categoryName": self.products[pid].get("categoryName"),
                    "quantity": qty,
                    "addedAt": "2025-09-01T10:00:00Z",
                }
                for pid, qty in self.cart.items()
            ]
            return httpx.Response(200, json={"success": True, "cartItems": items})
        if (method, path) == ("POST", "/api/cart/add"):
            pid = body["productId"]
            self.cart[pid] = self.cart.get(pid, 0) + body["quantity"]
            return httpx.Response(200, json={"success": True})
        if (method, path) == ("PUT", "/api/cart/update"):
            self.cart[body["productId"]] = body["quantity"]
            return httpx.Response(200, json={"success": True})
        if method == "DELETE" and path.startswith("/api/cart/remove/"):
            self.cart.pop(path.removeprefix("/api/cart/remove/"), None)
            return httpx.Response(200, json={"success": True})
        if (method, path) == ("DELETE", "/api/cart/clear"):
            self.cart.clear()
            return httpx.Response(200, json={"success": True})

        return httpx.Response(404, json={"success": False, "error": "Not found"})


class RecordingSink:
    """Collects what the cart and session layers tell the user."""

    def __init__(self) -> None:
        self.notifications: List[Tuple[str, str]] = []
        self.errors: list = []
        self.redirects: List[str] = []

    def notify(self, message: str, *, severity: str = "information") -> None:
        self.notifications.append((message, severity))

    def report(self, error) -> None:
        self.errors.append(error)

    def redirect(self, route: str) -> None:
        self.redirects.append(route)

    def errors_of(self, kind) -> list:
        return [e for e in self.errors if type(e) is kind]


class StorefrontTestCase(unittest.IsolatedAsyncioTestCase):
    """
    Points the session db at a temp file and wires the real session and
    cart layers to a FakeBackend.
    """

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.temp_dir.name, "test.sqlite")
        db_database.DB_PATH = self.db_path
        db_database._initialized = False

        self.backend = FakeBackend()
        self.sink = RecordingSink()

    async def asyncSetUp(self):
        db_database._init_lock = asyncio.Lock()
        self.api = ApiClient("http://testserver", transport=self.backend.transport)
        self.store = SessionStore()
        self.session, self.cart = self.build()

    async def asyncTearDown(self):
        await self.api.aclose()

    def tearDown(self):
        self.temp_dir.cleanup()

    def build(self):
        """A fresh session manager and cart, as after an app restart."""
        session = SessionManager(AuthClient(self.api), SessionStore())
        cart = CartStore(session, CartClient(self.api, lambda: session.token), self.sink)
        return session, cart

    async def login(self):
        await self.session.restore_session()
        await self.session.authenticate("good-credential")
