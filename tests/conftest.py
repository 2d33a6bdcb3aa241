"""
Pytest configuration and shared fixtures for SDK tests.
"""
import json
import pytest
from dataclasses import dataclass
from typing import Any, Dict, Optional
from unittest.mock import AsyncMock

import httpx

from apposaur.core.kv_store import MemoryKVStore
from apposaur.platform.base import Product, Purchase, PurchaseResult
from apposaur.sdk import ApposaurSDK
from apposaur.services.api_client import ApiClient


BASE_URL = "https://api.test/sdk"
API_KEY = "test-api-key"


@dataclass
class RecordedCall:
    method: str
    path: str
    params: Dict[str, str]
    body: Any
    headers: Dict[str, str]


class FakeBackend:
    """Route table behind an httpx.MockTransport; records every request."""

    def __init__(self):
        self.routes: Dict[tuple, Any] = {}
        self.calls = []

    def on(self, method: str, path: str, payload: Any = None, status: int = 200, handler=None):
        self.routes[(method, path)] = handler or (status, payload)

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.startswith("/sdk"):
            path = path[len("/sdk"):]
        body = json.loads(request.content) if request.content else None
        self.calls.append(RecordedCall(
            method=request.method,
            path=path,
            params=dict(request.url.params),
            body=body,
            headers=dict(request.headers),
        ))
        route = self.routes.get((request.method, path))
        if route is None:
            return httpx.Response(404)
        if callable(route):
            return route(request)
        status, payload = route
        if payload is None:
            return httpx.Response(status)
        return httpx.Response(status, json=payload)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls_to(self, path: str):
        return [c for c in self.calls if c.path == path]


class FakePlatform:
    """Platform binding with AsyncMock operations."""

    def __init__(
        self,
        name: str = "ios",
        connected: bool = True,
        purchases=None,
        products=None,
        purchase_result: Optional[PurchaseResult] = None,
    ):
        self.name = name
        self.init_connection = AsyncMock(return_value=connected)
        self.get_available_purchases = AsyncMock(return_value=list(purchases or []))
        self.get_products = AsyncMock(return_value=list(products or []))
        self.request_subscription = AsyncMock(return_value=purchase_result)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def store():
    return MemoryKVStore()


@pytest.fixture
def platform():
    return FakePlatform(
        purchases=[Purchase(product_id="prod_monthly", transaction_id="tx_0")],
        products=[Product(product_id="prod_monthly")],
        purchase_result=PurchaseResult(product_id="prod_monthly", transaction_id="tx_offer_1"),
    )


@pytest.fixture
def make_api_client(backend):
    """Factory for an ApiClient wired to the fake backend with no retry delay."""
    def _make(**overrides) -> ApiClient:
        options = {"base_url": BASE_URL, "retry_delay": 0.0, "transport": backend.transport}
        options.update(overrides)
        return ApiClient(API_KEY, "ios", **options)
    return _make


@pytest.fixture
def make_sdk(backend, store, platform):
    """Factory for an SDK; initialized=True skips initialize() and wires the API client."""
    def _make(initialized: bool = True, **overrides) -> ApposaurSDK:
        options = {"base_url": BASE_URL, "retry_delay": 0.0, "transport": backend.transport}
        options.update(overrides)
        sdk = ApposaurSDK(platform, store, **options)
        if initialized:
            sdk.context.api = ApiClient(API_KEY, platform.name, **sdk._client_options)
        return sdk
    return _make


@pytest.fixture
def sdk(make_sdk):
    return make_sdk()


@pytest.fixture
def make_platform():
    return FakePlatform
