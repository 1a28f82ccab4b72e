from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Iterable, Tuple

import msal
from azure.identity import ManagedIdentityCredential

from .audit import JsonAuditLogger
from .config import CertificateAuth, ClientSecretAuth, ManagedIdentityAuth, TenantConfig


class GraphAuthenticator:
    """Acquires app-only tokens for Microsoft Graph and SharePoint.

    Supports client secret, certificate-based auth, and managed identities. One
    MSAL application is kept per authenticator so its token cache is reused across
    the Graph and SharePoint resources touched during a provisioning run.
    """

    def __init__(self, tenant_config: TenantConfig, audit_logger: JsonAuditLogger):
        self.tenant_config = tenant_config
        self.audit = audit_logger
        self._app = None
        self._issued: Dict[Tuple[str, ...], bool] = {}

    def acquire_token(self, scopes: Iterable[str]) -> str:
        scopes = list(scopes)
        auth_config = self.tenant_config.auth

        if isinstance(auth_config, ManagedIdentityAuth):
            credential = ManagedIdentityCredential(client_id=auth_config.client_id)
            result = credential.get_token(*scopes)
            self._record_issue(scopes, "managed_identity")
            return result.token

        if isinstance(auth_config, (ClientSecretAuth, CertificateAuth)):
            app = self._confidential_app()
            result = app.acquire_token_silent(scopes, account=None)
            if not result:
                result = app.acquire_token_for_client(scopes=scopes)
            token = self._extract_token(result)
            self._record_issue(scopes, auth_config.type)
            return token

        raise ValueError("Unsupported authentication configuration")

    def _confidential_app(self) -> msal.ConfidentialClientApplication:
        if self._app is not None:
            return self._app

        auth_config = self.tenant_config.auth
        if isinstance(auth_config, ClientSecretAuth):
            credential = auth_config.client_secret.resolve()
        else:
            credential = self._load_certificate(Path(auth_config.certificate_path))

        self._app = msal.ConfidentialClientApplication(
            client_id=auth_config.client_id,
            client_credential=credential,
            authority=f"{auth_config.authority_host}/{self.tenant_config.tenant_id}",
            token_cache=msal.TokenCache(),
        )
        return self._app

    def _record_issue(self, scopes: list, auth_type: str) -> None:
        key = tuple(scopes)
        if key in self._issued:
            return
        self._issued[key] = True
        self.audit.info(
            "acquired_app_token",
            tenant_id=self.tenant_config.tenant_id,
            auth_type=auth_type,
            scopes=scopes,
        )

    @staticmethod
    def _extract_token(result: dict) -> str:
        if not result or "access_token" not in result:
            raise RuntimeError(f"Token acquisition failed: {json.dumps(result)}")
        return result["access_token"]

    def _load_certificate(self, path: Path) -> dict:
        auth_config = self.tenant_config.auth
        password = None
        if isinstance(auth_config, CertificateAuth) and auth_config.certificate_password:
            password = auth_config.certificate_password.resolve()
        try:
            with path.open("rb") as handle:
                certificate_bytes = handle.read()
        except OSError as exc:
            raise RuntimeError(f"Failed to read certificate at {path}: {exc}") from exc

        return {
            "private_key": certificate_bytes.decode("utf-8"),
            "thumbprint": auth_config.thumbprint,
            "passphrase": password,
        }
