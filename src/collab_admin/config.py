from __future__ import annotations

import os
from pathlib import Path
from typing import List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class SecretRef(BaseModel):
    """Reference to a secret source without storing the secret in the config file.

    Only environment variables and inline values are resolved. Inline values are
    meant for local development.
    """

    env: Optional[str] = Field(
        default=None, description="Environment variable name containing the secret"
    )
    value: Optional[str] = Field(
        default=None,
        description="Inline value (use only for local development; avoid in production)",
    )

    model_config = ConfigDict(extra="forbid")

    def resolve(self) -> str:
        if self.env:
            env_value = os.getenv(self.env)
            if env_value:
                return env_value
            raise ValueError(f"Environment variable {self.env} is not set")
        if self.value:
            return self.value
        raise ValueError("No secret reference provided for resolution")


class ClientSecretAuth(BaseModel):
    type: Literal["client_secret"]
    client_id: str
    client_secret: SecretRef
    authority_host: str = Field(
        default="https://login.microsoftonline.com",
        description="Entra ID authority host",
    )

    model_config = ConfigDict(extra="forbid")


class CertificateAuth(BaseModel):
    type: Literal["certificate"]
    client_id: str
    certificate_path: Path
    thumbprint: str
    certificate_password: Optional[SecretRef] = None
    authority_host: str = Field(
        default="https://login.microsoftonline.com",
        description="Entra ID authority host",
    )

    model_config = ConfigDict(extra="forbid")


class ManagedIdentityAuth(BaseModel):
    type: Literal["managed_identity"]
    client_id: Optional[str] = Field(
        default=None, description="Optional user-assigned managed identity client ID"
    )

    model_config = ConfigDict(extra="forbid")


AuthConfig = Union[ClientSecretAuth, CertificateAuth, ManagedIdentityAuth]


class TeamSettings(BaseModel):
    """Settings applied when a team is created on top of a supplier group."""

    allow_create_update_channels: bool = True
    allow_user_edit_messages: bool = True
    allow_user_delete_messages: bool = True
    allow_giphy: bool = True
    allow_stickers_and_memes: bool = True
    allow_custom_memes: bool = True

    model_config = ConfigDict(extra="forbid")

    def to_graph(self) -> dict:
        return {
            "memberSettings": {
                "allowCreateUpdateChannels": self.allow_create_update_channels,
            },
            "messagingSettings": {
                "allowUserEditMessages": self.allow_user_edit_messages,
                "allowUserDeleteMessages": self.allow_user_delete_messages,
            },
            "funSettings": {
                "allowGiphy": self.allow_giphy,
                "giphyContentRating": "strict",
                "allowStickersAndMemes": self.allow_stickers_and_memes,
                "allowCustomMemes": self.allow_custom_memes,
            },
        }


class ProvisioningSettings(BaseModel):
    expiry_days: int = Field(default=90, ge=0)
    group_name_prefix: str = "SUPPLIER - "
    site_wait_seconds: float = Field(
        default=10.0,
        ge=0,
        description="Single grace period before looking up the group's site",
    )
    default_redirect_url: str = "https://myapps.microsoft.com"
    invitation_message: str = (
        "You have been invited to collaborate with us as a supplier. "
        "Please accept the invitation to access the shared workspace."
    )
    sensitivity_label_id: Optional[str] = None
    sharepoint_admin_url: Optional[str] = Field(
        default=None,
        description="SharePoint admin endpoint, e.g. https://contoso-admin.sharepoint.com",
    )
    dlp_policy_name: Optional[str] = None
    team: TeamSettings = Field(default_factory=TeamSettings)

    model_config = ConfigDict(extra="forbid")


class ComplianceSettings(BaseModel):
    """App-only connection details for Security & Compliance PowerShell."""

    organization: str = Field(description="Primary tenant domain, e.g. contoso.onmicrosoft.com")
    app_id: str
    certificate_path: Optional[Path] = None
    certificate_thumbprint: Optional[str] = None
    certificate_password: Optional[SecretRef] = None
    timeout_seconds: int = 180

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def ensure_certificate(self) -> "ComplianceSettings":
        if not self.certificate_path and not self.certificate_thumbprint:
            raise ValueError("Either certificate_path or certificate_thumbprint is required")
        return self


class TenantConfig(BaseModel):
    tenant_id: str
    display_name: Optional[str] = None
    auth: AuthConfig
    default_scopes: List[str] = Field(
        default_factory=lambda: ["https://graph.microsoft.com/.default"]
    )
    graph_base_url: str = Field(
        default="https://graph.microsoft.com",
        description="Graph endpoint. Override for national clouds if needed.",
    )
    provisioning: ProvisioningSettings = Field(default_factory=ProvisioningSettings)
    compliance: Optional[ComplianceSettings] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("default_scopes")
    @classmethod
    def ensure_scopes(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("At least one scope must be provided per tenant")
        return value


class AdminConfig(BaseModel):
    tenants: List[TenantConfig]

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def load(cls, path: Union[str, Path]) -> "AdminConfig":
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with config_path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}

        return cls(**raw)
