"""Audit trail tests: entries are written and can never be changed."""

import pytest

from conftest import make_user
from pds_api.models.audit_log import AuditAction, AuditImmutableError, AuditTrail
from pds_api.services.audit_service import AuditService


@pytest.fixture
def audit():
    return AuditService()


class TestAuditTrail:

    def test_log_commits_entry(self, db, audit):
        user = make_user(db)

        entry = audit.log(db, AuditAction.LOGIN, "User logged in", user_id=user.id,
                          email=user.email, ip_address="127.0.0.1")

        assert entry.id is not None
        assert entry.action == "LOGIN"
        assert db.query(AuditTrail).count() == 1

    def test_entries_cannot_be_modified(self, db, audit):
        entry = audit.log(db, AuditAction.LOGIN, "User logged in")

        entry.description = "rewritten"
        with pytest.raises(AuditImmutableError):
            db.commit()
        db.rollback()

        assert db.query(AuditTrail).one().description == "User logged in"

    def test_entries_cannot_be_deleted(self, db, audit):
        entry = audit.log(db, AuditAction.LOGOUT, "User logged out")

        db.delete(entry)
        with pytest.raises(AuditImmutableError):
            db.commit()
        db.rollback()

        assert db.query(AuditTrail).count() == 1

    def test_query_filters_and_paginates(self, db, audit):
        user = make_user(db)
        for _ in range(3):
            audit.log(db, AuditAction.LOGIN, "User logged in", user_id=user.id)
        audit.log(db, AuditAction.LOGOUT, "User logged out", user_id=user.id)
        audit.log(db, AuditAction.LOGIN, "Someone else")

        result = audit.query_logs(db, user_id=user.id, action="login", page=1, page_size=2)

        assert result["total"] == 3
        assert len(result["logs"]) == 2
