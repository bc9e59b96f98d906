"""
Best-effort bulk import tests (users and payslips).

Every row stands alone: the summary must count exactly the rows that were
persisted, and a failing row must not disturb the rows around it.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from conftest import make_user
from pds_api.core.security import verify_password
from pds_api.models.audit_log import AuditAction, AuditTrail
from pds_api.models.payslip import Payslip
from pds_api.models.user import User
from pds_api.services.import_service import ImportService, normalize_row


def user_row(n, **overrides):
    row = {
        "First Name": f"Agent{n}",
        "Last Name": "Tester",
        "Email": f"agent{n}@example.com",
        "Nat ID": f"63-00000{n}A-00",
        "Phone Number": f"07720000{n:02d}",
        "Password": "Welcome1!",
        "Department": "Sales",
    }
    row.update(overrides)
    return row


@pytest.fixture
def imports():
    return ImportService()


class TestNormalizeRow:

    def test_headers_are_snake_cased(self):
        assert normalize_row({" Nat ID ": "x", "Phone Number": "y", None: "z"}) == {
            "nat_id": "x", "phone_number": "y",
        }


class TestUserImport:

    def test_five_good_rows_and_one_missing_field(self, db, imports, hr_user):
        rows = [user_row(n) for n in range(1, 6)] + [user_row(6, Email=None)]

        summary = imports.import_users(db, rows, hr_user)

        assert summary["total_records"] == 6
        assert summary["success_count"] == 5
        assert summary["error_count"] == 1
        assert summary["errors"][0]["row"] == 6
        assert "email" in summary["errors"][0]["error"]
        assert db.query(User).filter(User.email.like("agent%")).count() == 5

    def test_imported_users_are_verified_with_hashed_password(self, db, imports):
        imports.import_users(db, [user_row(1)])

        user = db.query(User).filter(User.email == "agent1@example.com").one()
        assert user.is_verified is True
        assert user.role_name == "USER"
        assert verify_password("Welcome1!", user.hashed_password)

    def test_inactive_flag_and_role_column(self, db, imports):
        imports.import_users(db, [user_row(1, Active="FALSE", Role="hr")])

        user = db.query(User).filter(User.email == "agent1@example.com").one()
        assert user.is_active is False
        assert user.role_name == "HR"

    def test_duplicates_within_file_and_database(self, db, imports):
        make_user(db, email="taken@example.com", phone_number="0779990000")
        rows = [
            user_row(1),
            user_row(2, **{"Nat ID": "63-000001A-00"}),
            user_row(3, Email="taken@example.com"),
            user_row(4, Role="OWNER"),
        ]

        summary = imports.import_users(db, rows)

        assert summary["success_count"] == 1
        assert [e["row"] for e in summary["errors"]] == [2, 3, 4]
        assert "national ID" in summary["errors"][0]["error"]
        assert summary["errors"][1]["error"] == "User with this email already exists"
        assert "Unknown role" in summary["errors"][2]["error"]

    def test_overlong_password_fails_only_its_row(self, db, imports):
        rows = [user_row(1), user_row(2, Password="Aa1!" + "x" * 80), user_row(3)]

        summary = imports.import_users(db, rows)

        assert summary["success_count"] == 2
        assert [e["row"] for e in summary["errors"]] == [2]
        assert "72 bytes" in summary["errors"][0]["error"]
        assert db.query(User).filter(User.email.like("agent%")).count() == 2

    def test_database_error_fails_only_its_row(self, db, imports, monkeypatch):
        real_commit = db.commit
        commits = []

        def flaky_commit():
            commits.append(1)
            if len(commits) == 2:
                raise OperationalError("INSERT INTO users", {}, Exception("Data too long"))
            real_commit()

        monkeypatch.setattr(db, "commit", flaky_commit)

        summary = imports.import_users(db, [user_row(1), user_row(2), user_row(3)])

        assert summary["success_count"] == 2
        assert summary["errors"] == [{
            "row": 2, "error": "Row could not be saved",
            "data": {"nat_id": "63-000002A-00", "email": "agent2@example.com"},
        }]
        assert db.query(User).filter(User.email == "agent2@example.com").count() == 0

    def test_import_is_audited(self, db, imports, hr_user):
        imports.import_users(db, [user_row(1)], hr_user)

        entry = db.query(AuditTrail).filter(AuditTrail.action == AuditAction.USER_IMPORT.value).one()
        assert entry.user_id == hr_user.id
        assert "1 of 1" in entry.description


class TestPayslipImport:

    @pytest.fixture
    def employees(self, db):
        return (
            make_user(db, email="tendai@example.com", phone_number="0771111111", nat_id="NAT-1"),
            make_user(db, email="rudo@example.com", phone_number="0772222222", nat_id="NAT-2"),
        )

    def test_partial_success(self, db, imports, employees, hr_user):
        rows = [
            {"Period": "2024-01", "Nat ID": "NAT-1", "Basic Pay": "1,000.50", "Net Pay": "900"},
            {"Period": "2024-01", "Nat ID": "NAT-404", "Net Pay": "10"},
            {"Period": "2024-01", "Nat ID": None, "Ecocash Number": "0772222222", "Tax": ""},
            {"Period": "2024-01", "Nat ID": "NAT-1", "Net Pay": "1"},
            {"Period": None, "Nat ID": "NAT-2"},
            {"Period": "2024-02", "Nat ID": "NAT-2", "Gross Pay": "lots"},
        ]

        summary = imports.import_payslips(db, rows, hr_user)

        assert summary["success_count"] == 2
        assert summary["error_count"] == 4
        assert db.query(Payslip).count() == 2
        errors = {e["row"]: e["error"] for e in summary["errors"]}
        assert errors[2] == "User with Nat_ID NAT-404 not found"
        assert "already exists" in errors[4]
        assert errors[5] == "Missing required fields (Period and Nat_ID)"
        assert "Invalid amount for gross_pay" in errors[6]

    def test_amounts_and_phone_fallback(self, db, imports, employees):
        tendai, rudo = employees
        imports.import_payslips(db, [
            {"Period": "2024-01", "Nat ID": "NAT-1", "Basic Pay": "1,000.50", "Commission": None},
            {"Period": "2024-01", "Phone": "0772222222", "Net Pay": "250"},
        ])

        first = db.query(Payslip).filter(Payslip.user_id == tendai.id).one()
        assert first.basic_pay == Decimal("1000.50")
        assert first.commission == Decimal("0")
        assert first.email_address == "tendai@example.com"
        second = db.query(Payslip).filter(Payslip.user_id == rudo.id).one()
        assert second.nat_id == "NAT-2"
        assert second.net_pay == Decimal("250")
