"""
Tests for the guest domain summary.

Covers:
- grouping, counting and ordering of domains
- sample user selection
- CSV export (file and in-memory)
- TenantSummaryReporter orchestration and empty outcomes
"""
import csv
from unittest.mock import Mock

from collab_admin.models import DomainSummaryRow, GuestUserRecord
from collab_admin.reporting import (
    TenantSummaryReporter,
    render_summary_csv,
    summarize,
    write_summary_csv,
)

from conftest import event_names


def by_mail(*addresses):
    return [
        GuestUserRecord(user_id=f"id-{i}", user_principal_name=f"upn{i}#EXT#@tenant.onmicrosoft.com", mail=address)
        for i, address in enumerate(addresses)
    ]


class TestSummarize:
    def test_orders_by_count_descending(self):
        rows = summarize(by_mail("u1@a.com", "u3@b.com", "u2@a.com"))
        assert [(row.external_domain, row.user_count) for row in rows] == [("a.com", 2), ("b.com", 1)]

    def test_ties_keep_first_seen_order(self):
        rows = summarize(by_mail("x@z.com", "y@y.com", "w@a.com"))
        assert [row.external_domain for row in rows] == ["z.com", "y.com", "a.com"]

    def test_samples_are_first_three_upns_in_order(self):
        users = by_mail("1@a.com", "2@a.com", "3@a.com", "4@a.com", "5@a.com")
        (row,) = summarize(users)
        assert row.user_count == 5
        assert row.sample_users == [users[0].user_principal_name, users[1].user_principal_name, users[2].user_principal_name]
        assert row.sample_users_text == "; ".join(row.sample_users)

    def test_sample_size_matches_small_groups(self):
        rows = summarize(by_mail("1@a.com", "2@b.com", "3@b.com"))
        for row in rows:
            assert len(row.sample_users) == min(3, row.user_count)

    def test_unresolvable_users_are_dropped(self):
        users = by_mail("1@a.com") + [GuestUserRecord(user_id="x", user_principal_name="local@tenant.com")]
        rows = summarize(users)
        assert sum(row.user_count for row in rows) == 1

    def test_empty_input(self):
        assert summarize([]) == []

    def test_nothing_resolvable(self):
        assert summarize([GuestUserRecord(user_id="x", user_principal_name="local@tenant.com")]) == []


class TestCsvExport:
    def test_write_summary_csv(self, tmp_path):
        rows = [
            DomainSummaryRow("a.com", 2, ["u1@a.com", "u2@a.com"]),
            DomainSummaryRow("b.com", 1, ["u3@b.com"]),
        ]
        path = write_summary_csv(rows, tmp_path / "out" / "report.csv")

        with path.open(encoding="utf-8", newline="") as handle:
            data = list(csv.reader(handle))
        assert data == [
            ["ExternalDomain", "UserCount", "SampleUsers"],
            ["a.com", "2", "u1@a.com; u2@a.com"],
            ["b.com", "1", "u3@b.com"],
        ]

    def test_render_matches_header(self):
        text = render_summary_csv([DomainSummaryRow("a.com", 1, ["u1@a.com"])])
        assert text.splitlines() == ["ExternalDomain,UserCount,SampleUsers", "a.com,1,u1@a.com"]


class TestTenantSummaryReporter:
    def test_run_exports_rows(self, tmp_path, audit_logger, audit_store):
        directory = Mock()
        directory.list_guest_users.return_value = by_mail("u1@a.com", "u2@a.com", "u3@b.com")
        output = tmp_path / "guests.csv"

        rows = TenantSummaryReporter(directory, audit_logger).run(output_path=output)

        directory.list_guest_users.assert_called_once_with()
        assert [row.external_domain for row in rows] == ["a.com", "b.com"]
        assert output.exists()
        assert "guest_report_exported" in event_names(audit_store)

    def test_run_without_output_path_writes_nothing(self, tmp_path, audit_logger):
        directory = Mock()
        directory.list_guest_users.return_value = by_mail("u1@a.com")

        rows = TenantSummaryReporter(directory, audit_logger).run()

        assert len(rows) == 1
        assert list(tmp_path.iterdir()) == []

    def test_empty_outcome_is_reported_not_raised(self, tmp_path, audit_logger, audit_store):
        directory = Mock()
        directory.list_guest_users.return_value = []
        output = tmp_path / "guests.csv"

        rows = TenantSummaryReporter(directory, audit_logger).run(output_path=output)

        assert rows == []
        assert not output.exists()
        assert "guest_report_empty" in event_names(audit_store)
