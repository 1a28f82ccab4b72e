from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .audit import JsonAuditLogger
from .compliance import ComplianceClient
from .config import TenantConfig
from .directory import DirectoryClient
from .graph_client import GraphClient
from .models import DomainSummaryRow, ProvisioningResult, SupplierRequest
from .provisioning import SupplierProvisioner
from .reporting import TenantSummaryReporter
from .sharepoint import SiteAdministrationClient


@dataclass
class TenantExecutionContext:
    tenant: TenantConfig
    graph: GraphClient
    directory: DirectoryClient
    audit: JsonAuditLogger
    site_admin: Optional[SiteAdministrationClient] = None
    compliance: Optional[ComplianceClient] = None

    @property
    def tenant_id(self) -> str:
        return self.tenant.tenant_id


class TenantOperations:
    """Supplier provisioning and guest reporting executed within a tenant context."""

    def __init__(self, context: TenantExecutionContext):
        self.context = context

    def provision_supplier(
        self,
        request: SupplierRequest,
        sensitivity_label_id: Optional[str] = None,
        dlp_policy_name: Optional[str] = None,
    ) -> ProvisioningResult:
        settings = self.context.tenant.provisioning
        overrides: Dict[str, Any] = {}
        if sensitivity_label_id:
            overrides["sensitivity_label_id"] = sensitivity_label_id
        if dlp_policy_name:
            overrides["dlp_policy_name"] = dlp_policy_name
        if overrides:
            settings = settings.model_copy(update=overrides)

        provisioner = SupplierProvisioner(
            self.context.directory,
            settings=settings,
            site_admin=self.context.site_admin,
            compliance=self.context.compliance,
            audit_logger=self.context.audit,
        )
        return provisioner.provision(request)

    def guest_domain_summary(
        self, output_path: Optional[Union[str, Path]] = None
    ) -> List[DomainSummaryRow]:
        reporter = TenantSummaryReporter(self.context.directory, audit_logger=self.context.audit)
        return reporter.run(output_path=output_path)
