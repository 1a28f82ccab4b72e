"""Shared fixtures: tenant config, isolated audit loggers and a fake Graph endpoint."""
import io
import json
import uuid
from typing import Any, Dict, List, Tuple, Union

import httpx
import pytest

from collab_admin.audit import InMemoryAuditStore, JsonAuditLogger
from collab_admin.config import AdminConfig, TenantConfig
from collab_admin.graph_client import GraphClient

TENANT_ID = "12345678-1234-1234-1234-123456789012"


class FakeAuthenticator:
    """Hands out a fixed token and records the scopes requested."""

    def __init__(self, token: str = "test-token"):
        self.token = token
        self.scopes: List[List[str]] = []

    def acquire_token(self, scopes):
        self.scopes.append(list(scopes))
        return self.token


class GraphRouter:
    """httpx MockTransport handler keyed on (method, path).

    A route maps to one response or a list of responses consumed in order.
    Every request is recorded for later assertions.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[httpx.Response]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, response: Union[httpx.Response, List[httpx.Response]]):
        responses = response if isinstance(response, list) else [response]
        self.routes.setdefault((method, path), []).extend(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"error": {"code": "NotFound"}})
        if len(queue) > 1:
            return queue.pop(0)
        return queue[0]

    def bodies(self, method: str, path: str) -> List[Any]:
        return [
            json.loads(req.content)
            for req in self.requests
            if req.method == method and req.url.path == path
        ]


@pytest.fixture
def tenant_config():
    return TenantConfig(
        tenant_id=TENANT_ID,
        display_name="Contoso",
        auth={
            "type": "client_secret",
            "client_id": "client-id",
            "client_secret": {"value": "secret"},
        },
    )


@pytest.fixture
def admin_config(tenant_config):
    return AdminConfig(tenants=[tenant_config])


@pytest.fixture
def audit_store():
    return InMemoryAuditStore()


@pytest.fixture
def audit_logger(audit_store):
    return JsonAuditLogger(name=f"collab_admin.test.{uuid.uuid4().hex}", store=audit_store, stream=io.StringIO())


@pytest.fixture
def authenticator():
    return FakeAuthenticator()


@pytest.fixture
def router():
    return GraphRouter()


@pytest.fixture
def graph(tenant_config, authenticator, audit_logger, router):
    client = GraphClient(
        tenant_config=tenant_config,
        authenticator=authenticator,
        audit_logger=audit_logger,
        transport=httpx.MockTransport(router),
        sleep=lambda seconds: None,
    )
    yield client
    client.close()


@pytest.fixture
def graph_factory(authenticator, router):
    """TenantManager graph factory wired to the fake Graph endpoint."""

    def factory(tenant, audit):
        return GraphClient(
            tenant_config=tenant,
            authenticator=authenticator,
            audit_logger=audit,
            transport=httpx.MockTransport(router),
        )

    return factory


def event_names(store: InMemoryAuditStore) -> List[str]:
    return [event.message for event in reversed(store.list(limit=1000))]
