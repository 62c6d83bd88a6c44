import pytest
from datetime import date

from sqlalchemy.exc import IntegrityError, OperationalError

from lucia_hrms.core.config import settings
from lucia_hrms.core.exceptions import DatabaseError, NotFoundError, TransientDatabaseError
from lucia_hrms.models import Branch, LeaveRequest
from lucia_hrms.services.base import BaseService, transactional
from lucia_hrms.services.leave_service import LeaveService


def _operational():
    return OperationalError("UPDATE leave_balances", {}, Exception("database is locked"))


class BranchWriter(BaseService):
    def __init__(self, db, failures=0, error=_operational):
        super().__init__(db)
        self.failures = failures
        self.error = error
        self.calls = 0

    @transactional
    def create(self, code):
        self.calls += 1
        self.db.add(Branch(name=f"Branch {code}", code=code))
        self.db.flush()
        if self.calls <= self.failures:
            raise self.error()
        return code


def test_commits_on_success(db_session):
    assert BranchWriter(db_session).create("NB") == "NB"
    db_session.rollback()
    assert db_session.query(Branch).filter(Branch.code == "NB").count() == 1


def test_transient_failure_is_retried(db_session, monkeypatch):
    monkeypatch.setattr(settings, "db_retry_attempts", 3)
    writer = BranchWriter(db_session, failures=2)
    writer.create("RT")
    assert writer.calls == 3
    # Failed attempts were rolled back, only the last insert survives
    assert db_session.query(Branch).filter(Branch.code == "RT").count() == 1


def test_exhausted_retries_surface_as_503(db_session, monkeypatch):
    monkeypatch.setattr(settings, "db_retry_attempts", 2)
    writer = BranchWriter(db_session, failures=5)
    with pytest.raises(TransientDatabaseError) as exc_info:
        writer.create("XX")
    assert writer.calls == 2
    assert exc_info.value.status_code == 503
    assert exc_info.value.details["retryable"] is True
    assert db_session.query(Branch).count() == 0


def test_integrity_error_is_not_retried(db_session):
    writer = BranchWriter(
        db_session, failures=1,
        error=lambda: IntegrityError("INSERT INTO branches", {}, Exception("duplicate")),
    )
    with pytest.raises(DatabaseError):
        writer.create("IE")
    assert writer.calls == 1


def test_domain_errors_pass_through_and_roll_back(db_session):
    class Failing(BaseService):
        @transactional
        def run(self):
            self.db.add(Branch(name="Temp", code="TMP"))
            self.db.flush()
            raise NotFoundError("Leave request not found")

    with pytest.raises(NotFoundError):
        Failing(db_session).run()
    assert db_session.query(Branch).filter(Branch.code == "TMP").count() == 0


def test_transient_failure_over_http_returns_503(client, db_session, org, auth_headers, set_balance, monkeypatch):
    monkeypatch.setattr(settings, "db_retry_attempts", 2)
    set_balance(org["employee"], total_allowed=5.0)

    def locked(self, employee_id, year):
        raise _operational()

    monkeypatch.setattr(LeaveService, "ensure_balances", locked)
    this_year = date.today().year
    response = client.post(
        "/api/leave/requests",
        headers=auth_headers(org["employee"]),
        json={
            "leave_type": "CASUAL",
            "start_date": f"{this_year}-03-02",
            "end_date": f"{this_year}-03-03",
            "reason": "Family function",
        },
    )
    assert response.status_code == 503
    assert response.headers["Retry-After"] == "5"
    assert response.json()["error"]["code"] == "DATABASE_UNAVAILABLE"
    assert db_session.query(LeaveRequest).count() == 0
