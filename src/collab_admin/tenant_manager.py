from __future__ import annotations

import uuid
from typing import Callable, Dict, Optional, TypeVar

from .audit import JsonAuditLogger
from .auth import GraphAuthenticator
from .compliance import ComplianceClient
from .config import AdminConfig, TenantConfig
from .directory import DirectoryClient
from .graph_client import GraphClient
from .operations import TenantExecutionContext, TenantOperations
from .sharepoint import SiteAdministrationClient

T = TypeVar("T")


class TenantManager:
    """Builds per-tenant clients and runs operations under a correlation id."""

    def __init__(
        self,
        config: AdminConfig,
        audit_logger: Optional[JsonAuditLogger] = None,
        graph_factory: Optional[Callable[[TenantConfig, JsonAuditLogger], GraphClient]] = None,
    ):
        self.config = config
        self.audit = audit_logger or JsonAuditLogger()
        self.graph_factory = graph_factory or self._default_graph
        self._tenant_cache: Dict[str, TenantConfig] = {tenant.tenant_id: tenant for tenant in config.tenants}

    def get_tenant(self, tenant_id: str) -> TenantConfig:
        tenant = self._tenant_cache.get(tenant_id)
        if not tenant:
            raise KeyError(f"Tenant {tenant_id} is not configured")
        return tenant

    @staticmethod
    def _default_graph(tenant: TenantConfig, audit: JsonAuditLogger) -> GraphClient:
        authenticator = GraphAuthenticator(tenant, audit)
        return GraphClient(tenant_config=tenant, authenticator=authenticator, audit_logger=audit)

    def with_context(self, tenant_id: str, correlation_id: Optional[str] = None) -> TenantExecutionContext:
        tenant = self.get_tenant(tenant_id)
        audit = self.audit.bind(tenant_id=tenant.tenant_id, correlation_id=correlation_id)
        graph = self.graph_factory(tenant, audit)

        site_admin = None
        if tenant.provisioning.sharepoint_admin_url:
            site_admin = SiteAdministrationClient(graph, tenant.provisioning.sharepoint_admin_url, audit)

        compliance = None
        if tenant.compliance:
            compliance = ComplianceClient(tenant.compliance, audit)

        return TenantExecutionContext(
            tenant=tenant,
            graph=graph,
            directory=DirectoryClient(graph),
            audit=audit,
            site_admin=site_admin,
            compliance=compliance,
        )

    def run_operation(
        self,
        tenant_id: str,
        operation: Callable[[TenantOperations], T],
        correlation_id: Optional[str] = None,
    ) -> T:
        correlation_id = correlation_id or str(uuid.uuid4())
        context = self.with_context(tenant_id, correlation_id=correlation_id)
        context.audit.info("operation_started")
        try:
            result = operation(TenantOperations(context))
        except Exception as exc:
            context.audit.error("operation_failed", error=str(exc), error_type=type(exc).__name__)
            raise
        finally:
            context.graph.close()
        context.audit.info("operation_completed")
        return result
