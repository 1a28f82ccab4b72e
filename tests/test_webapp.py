"""
Tests for the Flask web surface using the Flask test client.
"""
import httpx
import pytest

from collab_admin.config import AdminConfig
from collab_admin.tenant_manager import TenantManager
from webapp import create_app

from conftest import TENANT_ID


@pytest.fixture
def app(tenant_config, audit_logger, audit_store, graph_factory):
    tenant = tenant_config.model_copy(
        update={"provisioning": tenant_config.provisioning.model_copy(update={"site_wait_seconds": 0})}
    )
    manager = TenantManager(AdminConfig(tenants=[tenant]), audit_logger=audit_logger, graph_factory=graph_factory)
    app = create_app(manager=manager, audit_store=audit_store)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


class TestIndex:
    def test_lists_tenants(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert b"Contoso" in response.data


class TestProvision:
    def test_provision_renders_result(self, client, router):
        router.add("POST", "/v1.0/groups", httpx.Response(201, json={"id": "g1", "displayName": "SUPPLIER - Fabrikam"}))
        router.add("PUT", "/v1.0/groups/g1/team", httpx.Response(202))
        router.add(
            "GET",
            "/v1.0/groups/g1/sites/root",
            httpx.Response(200, json={"id": "s1", "webUrl": "https://contoso.sharepoint.com/sites/fabrikam"}),
        )
        router.add("POST", "/v1.0/invitations", httpx.Response(201, json={"id": "i1", "invitedUser": {"id": "u1"}}))
        router.add("POST", "/v1.0/groups/g1/members/$ref", httpx.Response(204))

        response = client.post(
            "/provision",
            data={
                "tenant_id": TENANT_ID,
                "name": "Fabrikam",
                "domain": "fabrikam.com",
                "contact_emails": "a@fabrikam.com\n\nb@fabrikam.com",
            },
        )

        assert response.status_code == 200
        assert b"SUPPLIER - Fabrikam" in response.data
        assert b"https://contoso.sharepoint.com/sites/fabrikam" in response.data
        assert len(router.bodies("POST", "/v1.0/invitations")) == 2

    def test_missing_tenant_redirects(self, client):
        response = client.post("/provision", data={"name": "Fabrikam", "domain": "fabrikam.com"})
        assert response.status_code == 302

    def test_blank_name_redirects(self, client, router):
        response = client.post("/provision", data={"tenant_id": TENANT_ID, "name": " ", "domain": "fabrikam.com"})
        assert response.status_code == 302
        assert router.requests == []

    def test_group_failure_is_flashed(self, client, router):
        router.add("POST", "/v1.0/groups", httpx.Response(403))
        response = client.post("/provision", data={"tenant_id": TENANT_ID, "name": "Fabrikam", "domain": "fabrikam.com"})
        assert response.status_code == 200
        assert b"Provisioning failed" in response.data


class TestGuestDomainCsv:
    def test_download(self, client, router):
        router.add(
            "GET",
            "/v1.0/users",
            httpx.Response(
                200,
                json={
                    "value": [
                        {"id": "1", "userPrincipalName": "a_x.com#EXT#@t.onmicrosoft.com", "mail": "a@x.com"},
                        {"id": "2", "userPrincipalName": "b#EXT#@t.onmicrosoft.com", "mail": None},
                    ]
                },
            ),
        )

        response = client.get(f"/reports/guest-domains.csv?tenant_id={TENANT_ID}")

        assert response.status_code == 200
        assert response.mimetype == "text/csv"
        assert response.get_data(as_text=True).splitlines() == [
            "ExternalDomain,UserCount,SampleUsers",
            "x.com,1,a_x.com#EXT#@t.onmicrosoft.com",
        ]

    def test_empty_report(self, client, router):
        router.add("GET", "/v1.0/users", httpx.Response(200, json={"value": []}))
        response = client.get(f"/reports/guest-domains.csv?tenant_id={TENANT_ID}")
        assert response.status_code == 204

    def test_tenant_required(self, client):
        assert client.get("/reports/guest-domains.csv").status_code == 400

    def test_unknown_tenant(self, client):
        assert client.get("/reports/guest-domains.csv?tenant_id=nope").status_code == 404


class TestAudit:
    def test_audit_json(self, client, router):
        router.add("GET", "/v1.0/users", httpx.Response(200, json={"value": []}))
        client.get(f"/reports/guest-domains.csv?tenant_id={TENANT_ID}")

        payload = client.get("/audit.json?limit=50").get_json()

        assert payload["count"] == len(payload["events"])
        assert any(event["message"] == "guest_report_empty" for event in payload["events"])

    def test_audit_page(self, client):
        assert client.get("/audit?limit=abc").status_code == 200
