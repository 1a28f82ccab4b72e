from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Dict, Iterable, List, Optional, TextIO, Union

from .audit import JsonAuditLogger
from .domains import infer_external_domain
from .models import DomainSummaryRow, GuestUserRecord

CSV_HEADER = ["ExternalDomain", "UserCount", "SampleUsers"]
SAMPLE_SIZE = 3
DEFAULT_REPORT_PATH = Path("guest_domain_summary.csv")


def summarize(users: Iterable[GuestUserRecord]) -> List[DomainSummaryRow]:
    """Count guests per inferred home domain.

    Rows are ordered by count, largest first. Domains with equal counts keep
    the order in which they were first seen.
    """
    rows: Dict[str, DomainSummaryRow] = {}
    for user in users:
        domain = infer_external_domain(user)
        if domain is None:
            continue
        row = rows.get(domain)
        if row is None:
            row = rows[domain] = DomainSummaryRow(external_domain=domain, user_count=0)
        row.user_count += 1
        if len(row.sample_users) < SAMPLE_SIZE:
            row.sample_users.append(user.user_principal_name)

    return sorted(rows.values(), key=lambda row: row.user_count, reverse=True)


def write_summary_csv(rows: Iterable[DomainSummaryRow], path: Union[str, Path]) -> Path:
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", newline="", encoding="utf-8") as handle:
        _write_rows(handle, rows)
    return output_path


def render_summary_csv(rows: Iterable[DomainSummaryRow]) -> str:
    buffer = io.StringIO()
    _write_rows(buffer, rows)
    return buffer.getvalue()


def _write_rows(handle: TextIO, rows: Iterable[DomainSummaryRow]) -> None:
    writer = csv.writer(handle)
    writer.writerow(CSV_HEADER)
    for row in rows:
        writer.writerow([row.external_domain, row.user_count, row.sample_users_text])


class TenantSummaryReporter:
    """Lists the tenant's guests once and summarizes them by home domain."""

    def __init__(self, directory, audit_logger: Optional[JsonAuditLogger] = None):
        self.directory = directory
        self.audit = audit_logger or JsonAuditLogger()

    def run(self, output_path: Optional[Union[str, Path]] = None) -> List[DomainSummaryRow]:
        users = self.directory.list_guest_users()
        self.audit.info("guest_users_listed", count=len(users))

        rows = summarize(users)
        if not rows:
            self.audit.warning("guest_report_empty", guest_count=len(users))
            return rows

        resolved = sum(row.user_count for row in rows)
        self.audit.info(
            "guest_report_summarized",
            domains=len(rows),
            resolved_users=resolved,
            unresolved_users=len(users) - resolved,
        )
        if output_path is not None:
            written = write_summary_csv(rows, output_path)
            self.audit.info("guest_report_exported", path=str(written), rows=len(rows))
        return rows
