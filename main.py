from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

import httpx
from azure.core.exceptions import ClientAuthenticationError
from pydantic import ValidationError

from collab_admin.audit import JsonAuditLogger
from collab_admin.config import AdminConfig
from collab_admin.models import SupplierRequest
from collab_admin.nickname import InvalidNicknameError
from collab_admin.reporting import DEFAULT_REPORT_PATH
from collab_admin.tenant_manager import TenantManager


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Supplier collaboration admin for Microsoft 365")
    parser.add_argument("--config", required=True, help="Path to tenant configuration YAML")
    parser.add_argument("--tenant-id", required=True, help="Tenant ID to target")
    parser.add_argument(
        "--operation",
        required=True,
        choices=["provision-supplier", "guest-domain-report"],
        help="Operation to run",
    )
    parser.add_argument("--name", help="Supplier name")
    parser.add_argument("--domain", help="Supplier email domain")
    parser.add_argument(
        "--contact-email",
        action="append",
        default=[],
        dest="contact_emails",
        help="Supplier contact to invite as a guest (repeatable)",
    )
    parser.add_argument("--expiry-days", type=int, help="Days until the supplier workspace expires")
    parser.add_argument("--sensitivity-label-id", help="Sensitivity label to apply to the supplier site")
    parser.add_argument("--dlp-policy-name", help="DLP policy to extend with the supplier site")
    parser.add_argument(
        "--output",
        default=str(DEFAULT_REPORT_PATH),
        help="CSV path for the guest domain report",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    config = AdminConfig.load(Path(args.config))
    manager = TenantManager(config, audit_logger=JsonAuditLogger(stream=sys.stderr))

    if args.operation == "provision-supplier":
        if not args.name or not args.domain:
            raise SystemExit("--name and --domain are required for supplier provisioning")
        tenant = manager.get_tenant(args.tenant_id)
        expiry_days = args.expiry_days if args.expiry_days is not None else tenant.provisioning.expiry_days
        try:
            request = SupplierRequest(
                name=args.name,
                domain=args.domain,
                contact_emails=args.contact_emails,
                expiry_days=expiry_days,
            )
        except ValidationError as exc:
            raise SystemExit(f"Invalid supplier request: {exc}") from exc

        try:
            result = manager.run_operation(
                tenant_id=args.tenant_id,
                operation=lambda ops: ops.provision_supplier(
                    request,
                    sensitivity_label_id=args.sensitivity_label_id,
                    dlp_policy_name=args.dlp_policy_name,
                ),
            )
        except (InvalidNicknameError, httpx.HTTPError, ClientAuthenticationError, RuntimeError) as exc:
            print(f"Supplier provisioning failed: {exc}", file=sys.stderr)
            return 1
        print(json.dumps(result.to_dict(), indent=2))
        return 0

    if args.operation == "guest-domain-report":
        try:
            rows = manager.run_operation(
                tenant_id=args.tenant_id,
                operation=lambda ops: ops.guest_domain_summary(output_path=args.output),
            )
        except (httpx.HTTPError, ClientAuthenticationError, RuntimeError, OSError) as exc:
            print(f"Guest domain report failed: {exc}", file=sys.stderr)
            return 1
        if not rows:
            print("No guest users with a resolvable external domain were found.", file=sys.stderr)
            return 0
        for row in rows:
            print(f"{row.external_domain}\t{row.user_count}\t{row.sample_users_text}")
        print(f"Exported {len(rows)} domains to {args.output}", file=sys.stderr)
        return 0

    raise SystemExit(f"Unsupported operation: {args.operation}")


if __name__ == "__main__":
    sys.exit(main())
