"""
Tests for YAML configuration loading and validation.
"""
import pytest
from pydantic import ValidationError

from collab_admin.config import AdminConfig, CertificateAuth, ComplianceSettings, SecretRef, TenantConfig

CONFIG_YAML = """
tenants:
  - tenant_id: tenant-a
    display_name: Contoso
    auth:
      type: certificate
      client_id: app-a
      certificate_path: /secrets/app.pem
      thumbprint: ABCDEF
    provisioning:
      expiry_days: 30
      sharepoint_admin_url: https://contoso-admin.sharepoint.com
      dlp_policy_name: Suppliers
      team:
        allow_giphy: false
    compliance:
      organization: contoso.onmicrosoft.com
      app_id: app-a
      certificate_thumbprint: ABCDEF
  - tenant_id: tenant-b
    auth:
      type: managed_identity
"""


class TestLoad:
    def test_load_yaml(self, tmp_path):
        path = tmp_path / "tenants.yaml"
        path.write_text(CONFIG_YAML, encoding="utf-8")

        config = AdminConfig.load(path)

        first, second = config.tenants
        assert isinstance(first.auth, CertificateAuth)
        assert first.provisioning.expiry_days == 30
        assert first.provisioning.team.allow_giphy is False
        assert first.provisioning.team.allow_create_update_channels is True
        assert first.compliance.organization == "contoso.onmicrosoft.com"
        assert second.provisioning.expiry_days == 90
        assert second.provisioning.site_wait_seconds == 10
        assert second.compliance is None

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AdminConfig.load(tmp_path / "missing.yaml")

    def test_unknown_keys_are_rejected(self):
        with pytest.raises(ValidationError):
            TenantConfig(tenant_id="t", auth={"type": "managed_identity"}, surprise=True)

    def test_negative_expiry_is_rejected(self):
        with pytest.raises(ValidationError):
            TenantConfig(tenant_id="t", auth={"type": "managed_identity"}, provisioning={"expiry_days": -1})


class TestComplianceSettings:
    def test_certificate_required(self):
        with pytest.raises(ValidationError):
            ComplianceSettings(organization="contoso.onmicrosoft.com", app_id="app")


class TestSecretRef:
    def test_env(self, monkeypatch):
        monkeypatch.setenv("COLLAB_ADMIN_SECRET", "s3cret")
        assert SecretRef(env="COLLAB_ADMIN_SECRET").resolve() == "s3cret"

    def test_missing_env(self, monkeypatch):
        monkeypatch.delenv("COLLAB_ADMIN_SECRET", raising=False)
        with pytest.raises(ValueError):
            SecretRef(env="COLLAB_ADMIN_SECRET").resolve()

    def test_inline_value(self):
        assert SecretRef(value="inline").resolve() == "inline"
