from __future__ import annotations

from typing import List

from .audit import JsonAuditLogger
from .graph_client import GraphClient


class SiteAdministrationClient:
    """SharePoint REST calls that need an app-only SharePoint token.

    Requests go through the tenant's ``GraphClient`` session so they share its
    authenticator and request logging, but are scoped to the SharePoint resource.
    """

    def __init__(self, graph: GraphClient, admin_url: str, audit_logger: JsonAuditLogger):
        self.graph = graph
        self.admin_url = admin_url.rstrip("/")
        self.audit = audit_logger

    @property
    def scopes(self) -> List[str]:
        return [f"{self.admin_url}/.default"]

    def apply_sensitivity_label(self, site_url: str, label_id: str) -> None:
        endpoint = f"{site_url.rstrip('/')}/_api/site"
        self.graph.request(
            "POST",
            endpoint,
            scopes=self.scopes,
            headers={
                "Accept": "application/json;odata=nometadata",
                "Content-Type": "application/json;odata=nometadata",
                "X-HTTP-Method": "MERGE",
                "IF-MATCH": "*",
            },
            json={"SensitivityLabelId": label_id},
        )
        self.audit.info("sensitivity_label_applied", site_url=site_url, label_id=label_id)
