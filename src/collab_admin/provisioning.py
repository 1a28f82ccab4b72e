from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import httpx
from azure.core.exceptions import ClientAuthenticationError

from .audit import JsonAuditLogger
from .compliance import ComplianceClient, ComplianceCommandError
from .config import ProvisioningSettings
from .models import InvitedUser, InviteStatus, ProvisioningResult, SupplierRequest
from .nickname import sanitize
from .sharepoint import SiteAdministrationClient

RECOVERABLE_ERRORS = (httpx.HTTPError, ComplianceCommandError)
# Label and DLP steps use their own tokens, credentials and secrets.
OPTIONAL_STEP_ERRORS = RECOVERABLE_ERRORS + (RuntimeError, ValueError, ClientAuthenticationError)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SupplierProvisioner:
    """Creates a supplier workspace and invites the supplier's contacts as guests.

    Steps run strictly in order. Only group creation is fatal; every later
    failure is logged, recorded on the result and the run carries on. Nothing is
    rolled back.
    """

    def __init__(
        self,
        directory,
        settings: Optional[ProvisioningSettings] = None,
        site_admin: Optional[SiteAdministrationClient] = None,
        compliance: Optional[ComplianceClient] = None,
        audit_logger: Optional[JsonAuditLogger] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.directory = directory
        self.settings = settings or ProvisioningSettings()
        self.site_admin = site_admin
        self.compliance = compliance
        self.audit = audit_logger or JsonAuditLogger()
        self.sleep = sleep
        self.clock = clock

    def provision(self, request: SupplierRequest) -> ProvisioningResult:
        settings = self.settings
        mail_nickname = sanitize(request.name)
        expires_on = (self.clock() + timedelta(days=request.expiry_days)).strftime("%Y-%m-%d")
        display_name = f"{settings.group_name_prefix}{request.name}"
        description = f"Supplier: {request.name} ({request.domain}) | Expires on {expires_on}"

        self.audit.info("supplier_provisioning_started", supplier=request.name, domain=request.domain)
        group = self.directory.create_group(
            display_name=display_name,
            mail_nickname=mail_nickname,
            description=description,
        )
        self.audit.info("supplier_group_created", group_id=group.id, display_name=group.display_name)

        result = ProvisioningResult(
            group_id=group.id,
            group_name=group.display_name,
            mail_nickname=mail_nickname,
            expires_on=expires_on,
        )

        self._create_team(result)
        self._resolve_site(result)
        if result.site_url:
            self._apply_sensitivity_label(result)
            self._register_dlp_location(result)

        for email in request.contact_emails:
            result.invited_users.append(self._invite(result, email))

        self.audit.info(
            "supplier_provisioning_completed",
            group_id=result.group_id,
            site_url=result.site_url,
            invited=sum(1 for user in result.invited_users if user.status is InviteStatus.INVITED),
            failed=sum(1 for user in result.invited_users if user.status is not InviteStatus.INVITED),
            warnings=len(result.warnings),
        )
        return result

    def _warn(self, result: ProvisioningResult, event: str, message: str, **fields) -> None:
        result.warnings.append(message)
        self.audit.warning(event, group_id=result.group_id, detail=message, **fields)

    def _create_team(self, result: ProvisioningResult) -> None:
        try:
            self.directory.create_team(result.group_id, self.settings.team)
        except RECOVERABLE_ERRORS as exc:
            self._warn(result, "supplier_team_failed", f"Team creation failed: {exc}")
            return
        self.audit.info("supplier_team_requested", group_id=result.group_id)

    def _resolve_site(self, result: ProvisioningResult) -> None:
        if self.settings.site_wait_seconds:
            self.sleep(self.settings.site_wait_seconds)
        try:
            site = self.directory.get_group_site(result.group_id)
        except RECOVERABLE_ERRORS as exc:
            self._warn(result, "supplier_site_lookup_failed", f"Site lookup failed: {exc}")
            return
        if site is None:
            self._warn(result, "supplier_site_unavailable", "Site is not provisioned yet")
            return
        result.site_url = site.web_url
        self.audit.info("supplier_site_resolved", group_id=result.group_id, site_url=site.web_url)

    def _apply_sensitivity_label(self, result: ProvisioningResult) -> None:
        label_id = self.settings.sensitivity_label_id
        if not label_id or self.site_admin is None:
            return
        try:
            self.site_admin.apply_sensitivity_label(result.site_url, label_id)
        except OPTIONAL_STEP_ERRORS as exc:
            self._warn(result, "sensitivity_label_failed", f"Sensitivity label not applied: {exc}", label_id=label_id)
            return
        result.sensitivity_label_applied = True

    def _register_dlp_location(self, result: ProvisioningResult) -> None:
        policy_name = self.settings.dlp_policy_name
        if not policy_name or self.compliance is None:
            return
        try:
            policy = self.compliance.get_dlp_policy(policy_name)
            if policy is None:
                self._warn(result, "dlp_policy_missing", f"DLP policy {policy_name!r} not found", policy=policy_name)
                return
            if not policy.add_sharepoint_location(result.site_url):
                self.audit.info("dlp_location_present", policy=policy_name, site_url=result.site_url)
                return
            self.compliance.set_dlp_policy(policy)
        except OPTIONAL_STEP_ERRORS as exc:
            self._warn(result, "dlp_policy_failed", f"DLP policy not updated: {exc}", policy=policy_name)
            return
        result.dlp_policy_updated = True

    def _invite(self, result: ProvisioningResult, email: str) -> InvitedUser:
        redirect_url = result.site_url or self.settings.default_redirect_url
        try:
            invitation = self.directory.invite_guest_user(
                email,
                redirect_url=redirect_url,
                message=self.settings.invitation_message,
            )
        except RECOVERABLE_ERRORS as exc:
            self.audit.warning("guest_invite_failed", group_id=result.group_id, email=email, error=str(exc))
            return InvitedUser(email=email, status=InviteStatus.INVITE_FAILED, error=str(exc))

        if not invitation.invited_user_id:
            self.audit.warning("guest_invite_failed", group_id=result.group_id, email=email, error="no guest id returned")
            return InvitedUser(email=email, status=InviteStatus.INVITE_FAILED, error="No guest user id returned")

        user_id = invitation.invited_user_id
        try:
            self.directory.add_group_member(result.group_id, user_id)
        except RECOVERABLE_ERRORS as exc:
            self.audit.warning(
                "guest_membership_failed",
                group_id=result.group_id,
                email=email,
                guest_user_id=user_id,
                error=str(exc),
            )
            return InvitedUser(
                email=email,
                status=InviteStatus.MEMBERSHIP_FAILED,
                guest_user_id=user_id,
                error=str(exc),
            )

        self.audit.info("guest_invited", group_id=result.group_id, email=email, guest_user_id=user_id)
        return InvitedUser(email=email, status=InviteStatus.INVITED, guest_user_id=user_id)
