"""Security & Compliance PowerShell client.

DLP compliance policies have no Graph API, so they are read and updated by
running the ExchangeOnlineManagement module's ``Connect-IPPSSession`` through
``pwsh`` with app-only certificate authentication.

Prerequisites:
1. PowerShell 7+ with ``Install-Module ExchangeOnlineManagement``.
2. An app registration with ``Exchange.ManageAsApp`` and the Compliance
   Administrator role, plus a certificate uploaded to it.
"""

from __future__ import annotations

import json
import subprocess
from typing import Any, Callable, List, Optional

from .audit import JsonAuditLogger
from .config import ComplianceSettings
from .models import DlpPolicy


class ComplianceCommandError(RuntimeError):
    """A compliance PowerShell session failed or returned unusable output."""


def quote(value: str) -> str:
    """Quote a value as a single-quoted PowerShell string literal."""
    return "'" + value.replace("'", "''") + "'"


class ComplianceClient:
    def __init__(
        self,
        settings: ComplianceSettings,
        audit_logger: JsonAuditLogger,
        runner: Callable[..., Any] = subprocess.run,
    ):
        self.settings = settings
        self.audit = audit_logger
        self.runner = runner

    def _build_connect_command(self) -> str:
        settings = self.settings
        if settings.certificate_path:
            password = ""
            if settings.certificate_password:
                password = (
                    "-CertificatePassword (ConvertTo-SecureString -String "
                    f"{quote(settings.certificate_password.resolve())} -AsPlainText -Force) "
                )
            return (
                f"Connect-IPPSSession -AppId {quote(settings.app_id)} "
                f"-CertificateFilePath {quote(str(settings.certificate_path))} "
                f"{password}"
                f"-Organization {quote(settings.organization)} *>$null"
            )
        return (
            f"Connect-IPPSSession -AppId {quote(settings.app_id)} "
            f"-CertificateThumbprint {quote(settings.certificate_thumbprint or '')} "
            f"-Organization {quote(settings.organization)} *>$null"
        )

    def _run_powershell(self, commands: List[str]) -> Optional[Any]:
        script = "; ".join(
            [
                "$ErrorActionPreference = 'Stop'",
                "Import-Module ExchangeOnlineManagement",
                self._build_connect_command(),
                *commands,
                "Disconnect-ExchangeOnline -Confirm:$false *>$null",
            ]
        )
        try:
            result = self.runner(
                ["pwsh", "-NoProfile", "-NonInteractive", "-Command", script],
                capture_output=True,
                text=True,
                timeout=self.settings.timeout_seconds,
            )
        except FileNotFoundError as exc:
            raise ComplianceCommandError("PowerShell (pwsh) not found. Install PowerShell 7+.") from exc
        except subprocess.TimeoutExpired as exc:
            raise ComplianceCommandError("Compliance PowerShell command timed out") from exc

        if result.returncode != 0:
            raise ComplianceCommandError(f"PowerShell error: {result.stderr.strip()}")

        output = (result.stdout or "").strip()
        if not output:
            return None

        json_start = min((i for i in (output.find("{"), output.find("[")) if i != -1), default=-1)
        if json_start == -1:
            return None
        try:
            return json.loads(output[json_start:])
        except json.JSONDecodeError as exc:
            raise ComplianceCommandError(f"Failed to parse PowerShell output: {output[:200]}") from exc

    def get_dlp_policy(self, name: str) -> Optional[DlpPolicy]:
        commands = [
            f"$policy = Get-DlpCompliancePolicy -Identity {quote(name)} -ErrorAction SilentlyContinue",
            (
                "if ($policy) { $policy | Select-Object Name, "
                "@{n='SharePointLocation';e={@($_.SharePointLocation | ForEach-Object { $_.Name })}} "
                "| ConvertTo-Json -Depth 3 }"
            ),
        ]
        data = self._run_powershell(commands)
        if not isinstance(data, dict) or "Name" not in data:
            return None

        locations = data.get("SharePointLocation") or []
        if isinstance(locations, str):
            locations = [locations]
        return DlpPolicy(name=data["Name"], sharepoint_locations=[loc for loc in locations if loc])

    def set_dlp_policy(self, policy: DlpPolicy) -> None:
        if not policy.added_locations:
            return
        locations = ", ".join(quote(url) for url in policy.added_locations)
        self._run_powershell(
            [f"Set-DlpCompliancePolicy -Identity {quote(policy.name)} -AddSharePointLocation @({locations})"]
        )
        self.audit.info(
            "dlp_policy_updated",
            policy=policy.name,
            added_locations=list(policy.added_locations),
        )
        policy.added_locations.clear()
