import uuid

from models.user import Actor, UserRole


def _report(client, headers, title="Leaking pipe"):
    response = client.post(
        "/issues/",
        json={"title": title, "description": "Water everywhere", "category": "plumbing"},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_root(client):
    assert client.get("/").status_code == 200


def test_missing_token_is_401(client):
    assert client.get("/issues/").status_code == 401


def test_bad_token_is_401(client):
    response = client.get("/issues/", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_full_workflow_over_http(client, auth_headers, reporter, fixer1, fixer2, arbiter):
    issue = _report(client, auth_headers(reporter))
    issue_id = issue["id"]
    assert issue["status"] == "submitted"

    bid = client.post(
        f"/worker/issues/{issue_id}/applications",
        json={"estimated_cost": "50", "estimated_time": "2 days", "proposal": "New washer"},
        headers=auth_headers(fixer1),
    )
    assert bid.status_code == 201, bid.text
    rival = client.post(
        f"/worker/issues/{issue_id}/applications",
        json={"estimated_cost": "60", "estimated_time": "1 day", "proposal": "New pipe"},
        headers=auth_headers(fixer2),
    )
    assert rival.status_code == 201

    accepted = client.post(
        f"/admin/issues/{issue_id}/applications/{bid.json()['id']}/accept",
        json={"feedback": "Cheapest"},
        headers=auth_headers(arbiter),
    )
    assert accepted.status_code == 200, accepted.text
    body = accepted.json()
    assert body["issue_status"] == "assigned"
    assert body["assigned_fixer_id"] == str(fixer1.id)
    assert body["rejected_rivals"] == 1

    started = client.post(f"/worker/issues/{issue_id}/start", headers=auth_headers(fixer1))
    assert started.json()["status"] == "in_progress"

    proof = client.post(
        f"/worker/issues/{issue_id}/evidence",
        json={"photo_url": "proofs/fixed.jpg", "description": "Replaced washer"},
        headers=auth_headers(fixer1),
    )
    assert proof.status_code == 201, proof.text

    approved = client.post(f"/admin/evidence/{proof.json()['id']}/approve", headers=auth_headers(arbiter))
    assert approved.json()["status"] == "approved"

    pending = client.get("/admin/payouts/pending", headers=auth_headers(arbiter)).json()
    assert pending["currency"] == "BDT"
    assert [item["issue_id"] for item in pending["work_items"]] == [issue_id]

    paid = client.post(
        "/admin/payments", json={"issue_id": issue_id, "amount": "50"}, headers=auth_headers(arbiter)
    )
    assert paid.status_code == 201, paid.text
    assert client.get(f"/issues/{issue_id}", headers=auth_headers(reporter)).json()["status"] == "closed"

    balance = client.get("/worker/balance", headers=auth_headers(fixer1)).json()
    assert float(balance["balance"]) == 50.0

    withdrawal = client.post(
        "/worker/withdrawals",
        json={"method": "bkash", "account_number": "01711111111", "amount": "50"},
        headers=auth_headers(fixer1),
    )
    assert withdrawal.status_code == 201
    overdraw = client.post(
        "/worker/withdrawals",
        json={"method": "bkash", "account_number": "01711111111", "amount": "1"},
        headers=auth_headers(fixer1),
    )
    assert overdraw.status_code == 409
    assert overdraw.json()["code"] == "insufficient_balance"

    rating = client.post(f"/issues/{issue_id}/rating", json={"rating": 5}, headers=auth_headers(reporter))
    assert rating.status_code == 201

    logs = client.get("/admin/audit-logs", params={"issue_id": issue_id}, headers=auth_headers(arbiter))
    assert logs.status_code == 200
    assert {"created_issue", "recorded_payment", "rated_fixer"} <= {log["action"] for log in logs.json()}


def test_wrong_role_maps_to_403(client, auth_headers, fixer1):
    response = client.post(
        "/issues/",
        json={"title": "t", "description": "d", "category": "c"},
        headers=auth_headers(fixer1),
    )
    assert response.status_code == 403
    assert response.json()["code"] == "wrong_role"


def test_admin_listing_needs_arbiter(client, auth_headers, reporter):
    response = client.get("/admin/evidence/pending", headers=auth_headers(reporter))
    assert response.status_code == 403


def test_unknown_issue_maps_to_404(client, auth_headers, reporter):
    response = client.get(f"/issues/{uuid.uuid4()}", headers=auth_headers(reporter))
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_duplicate_bid_maps_to_409(client, auth_headers, reporter, fixer1):
    issue = _report(client, auth_headers(reporter))
    payload = {"estimated_cost": "20", "estimated_time": "1 day", "proposal": "Fix"}
    url = f"/worker/issues/{issue['id']}/applications"
    assert client.post(url, json=payload, headers=auth_headers(fixer1)).status_code == 201
    response = client.post(url, json=payload, headers=auth_headers(fixer1))
    assert response.status_code == 409
    assert response.json()["code"] == "duplicate_bid"


def test_validation_error_maps_to_400(client, auth_headers, reporter, fixer1):
    issue = _report(client, auth_headers(reporter))
    response = client.post(
        f"/worker/issues/{issue['id']}/applications",
        json={"estimated_cost": "-3", "estimated_time": "1 day", "proposal": "Fix"},
        headers=auth_headers(fixer1),
    )
    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


def test_mine_filters_reporter_issues(client, auth_headers, reporter):
    other = Actor(id=uuid.uuid4(), role=UserRole.reporter, username="other")
    _report(client, auth_headers(reporter), "Mine")
    _report(client, auth_headers(other), "Theirs")
    titles = [i["title"] for i in client.get("/issues/", params={"mine": True}, headers=auth_headers(reporter)).json()]
    assert titles == ["Mine"]


def test_oversized_amount_maps_to_400(client, auth_headers, fixer1):
    response = client.post(
        "/worker/withdrawals",
        json={"method": "bkash", "account_number": "01711111111", "amount": "1e30"},
        headers=auth_headers(fixer1),
    )
    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


def test_fixer_cannot_read_another_fixers_balance(client, auth_headers, paid_issue, fixer1, fixer2):
    response = client.get(f"/admin/fixers/{fixer1.id}/balance", headers=auth_headers(fixer2))
    assert response.status_code == 403
    assert response.json()["code"] == "wrong_role"


def test_admin_mutations_need_arbiter(client, auth_headers, resolved_issue, fixer1):
    payment = client.post(
        "/admin/payments",
        json={"issue_id": str(resolved_issue.id), "amount": "50"},
        headers=auth_headers(fixer1),
    )
    assert payment.status_code == 403
    assert payment.json()["code"] == "wrong_role"

    settle = client.post(
        f"/admin/withdrawals/{uuid.uuid4()}/settle",
        json={"successful": True},
        headers=auth_headers(fixer1),
    )
    assert settle.status_code == 403
    assert settle.json()["code"] == "wrong_role"


def test_out_of_range_rating_maps_to_400(client, auth_headers, paid_issue, reporter):
    response = client.post(f"/issues/{paid_issue.id}/rating", json={"rating": 6}, headers=auth_headers(reporter))
    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"
