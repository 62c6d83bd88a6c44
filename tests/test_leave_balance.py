import pytest
from datetime import date

from lucia_hrms.models import AdjustmentType, LeaveBalanceAdjustment, LeaveType

THIS_YEAR = date.today().year


def _adjust(client, auth_headers, actor, employee, adjustment_type, days, leave_type="CASUAL", reason="Policy correction"):
    return client.post(
        "/api/leave/balance/adjustments",
        headers=auth_headers(actor),
        json={
            "employee_id": employee.employee_id,
            "year": THIS_YEAR,
            "leave_type": leave_type,
            "adjustment_type": adjustment_type,
            "days": days,
            "reason": reason,
        },
    )


def test_own_balance_is_seeded_with_default_allowances(client, org, auth_headers):
    response = client.get("/api/leave/balance", headers=auth_headers(org["employee"]))
    assert response.status_code == 200
    balances = {b["leave_type"]: b for b in response.json()["data"]}
    assert set(balances) == {"CASUAL", "SICK", "ANNUAL", "MATERNITY", "PATERNITY"}
    assert balances["CASUAL"]["total_allowed"] == 12
    assert balances["ANNUAL"]["available"] == 21
    assert all(b["year"] == THIS_YEAR for b in balances.values())


def test_seeding_is_idempotent(client, org, auth_headers):
    headers = auth_headers(org["employee"])
    first = client.get("/api/leave/balance", headers=headers).json()["data"]
    second = client.get("/api/leave/balance", headers=headers).json()["data"]
    assert sorted(b["id"] for b in first) == sorted(b["id"] for b in second)


def test_balance_for_another_year(client, org, auth_headers):
    response = client.get("/api/leave/balance", headers=auth_headers(org["employee"]), params={"year": THIS_YEAR + 1})
    assert {b["year"] for b in response.json()["data"]} == {THIS_YEAR + 1}


def test_manager_views_branch_employee_balance(client, org, auth_headers):
    params = {"employee_id": org["employee"].employee_id}
    assert client.get("/api/leave/balance", headers=auth_headers(org["manager"]), params=params).status_code == 200
    assert client.get("/api/leave/balance", headers=auth_headers(org["other_manager"]), params=params).status_code == 403
    assert client.get("/api/leave/balance", headers=auth_headers(org["outsider"]), params=params).status_code == 403


def test_admin_without_employee_record_has_no_own_balance(client, org, auth_headers):
    response = client.get("/api/leave/balance", headers=auth_headers(org["admin"]))
    assert response.status_code == 404


def test_add_days(client, db_session, org, auth_headers):
    response = _adjust(client, auth_headers, org["admin"], org["employee"], "ADD", 2)
    assert response.status_code == 200
    balance = response.json()["data"]
    assert balance["total_allowed"] == 14
    assert balance["available"] == 14

    row = db_session.query(LeaveBalanceAdjustment).one()
    assert row.adjustment_type == AdjustmentType.ADD
    assert row.adjusted_by == org["admin"].id
    assert row.leave_request_id is None


def test_deduct_counts_as_used(client, org, auth_headers, set_balance):
    set_balance(org["employee"], total_allowed=5.0)
    response = _adjust(client, auth_headers, org["manager"], org["employee"], "DEDUCT", 2)
    assert response.status_code == 200
    balance = response.json()["data"]
    assert (balance["used"], balance["available"]) == (2, 3)


def test_deduct_beyond_available_is_refused(client, db_session, org, auth_headers, set_balance):
    set_balance(org["employee"], total_allowed=5.0, pending=4.0)
    response = _adjust(client, auth_headers, org["admin"], org["employee"], "DEDUCT", 2)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INSUFFICIENT_BALANCE"
    assert db_session.query(LeaveBalanceAdjustment).count() == 0


def test_set_allowance(client, org, auth_headers, set_balance):
    set_balance(org["employee"], total_allowed=5.0, used=2.0)
    response = _adjust(client, auth_headers, org["admin"], org["employee"], "SET", 10)
    assert response.json()["data"]["available"] == 8

    response = _adjust(client, auth_headers, org["admin"], org["employee"], "SET", 1)
    assert response.status_code == 400


def test_carry_forward_replaces_previous_value(client, org, auth_headers, set_balance):
    set_balance(org["employee"], total_allowed=5.0)
    _adjust(client, auth_headers, org["admin"], org["employee"], "CARRY_FORWARD", 4)
    response = _adjust(client, auth_headers, org["admin"], org["employee"], "CARRY_FORWARD", 3)
    balance = response.json()["data"]
    assert balance["carried_forward"] == 3
    assert balance["available"] == 8


def test_emergency_leave_must_be_granted(client, org, auth_headers):
    response = _adjust(client, auth_headers, org["admin"], org["employee"], "ADD", 2, leave_type="EMERGENCY")
    assert response.status_code == 200
    assert response.json()["data"]["leave_type"] == "EMERGENCY"
    assert response.json()["data"]["available"] == 2


@pytest.mark.parametrize("who", ["employee", "leader", "other_manager"])
def test_adjustment_requires_oversight(client, org, auth_headers, who):
    response = _adjust(client, auth_headers, org[who], org["employee"], "ADD", 1)
    assert response.status_code == 403


def test_adjustment_requires_reason(client, org, auth_headers):
    response = _adjust(client, auth_headers, org["admin"], org["employee"], "ADD", 1, reason="")
    assert response.status_code == 400


def test_adjustment_rejects_blank_reason(client, db_session, org, auth_headers, set_balance):
    set_balance(org["employee"], total_allowed=5.0)
    response = _adjust(client, auth_headers, org["admin"], org["employee"], "ADD", 1, reason="   ")
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"
    assert db_session.query(LeaveBalanceAdjustment).count() == 0
    db_session.expire_all()
    balance = client.get(
        "/api/leave/balance", headers=auth_headers(org["admin"]), params={"employee_id": org["employee"].employee_id}
    ).json()["data"]
    assert next(b for b in balance if b["leave_type"] == "CASUAL")["total_allowed"] == 5


def test_negative_days_are_rejected(client, org, auth_headers):
    response = _adjust(client, auth_headers, org["admin"], org["employee"], "ADD", -1)
    assert response.status_code == 400


def test_unknown_employee_is_404(client, org, auth_headers):
    response = client.post(
        "/api/leave/balance/adjustments",
        headers=auth_headers(org["admin"]),
        json={
            "employee_id": 9999,
            "year": THIS_YEAR,
            "leave_type": "CASUAL",
            "adjustment_type": "ADD",
            "days": 1,
            "reason": "Bonus",
        },
    )
    assert response.status_code == 404
