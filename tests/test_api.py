CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}

ESCALATION = {
    "userId": "user-42",
    "userName": "Jamie",
    "userEmail": "jamie@example.com",
    "summary": "billing issue",
    "chatHistory": [{"role": "user", "text": "My invoice is wrong"}],
}

TICKET = {
    "userId": "user-7",
    "userName": "Riley",
    "userEmail": "riley@example.com",
    "subject": "Export fails",
    "description": "The CSV export stops at 50%.",
    "category": "technical",
    "chatHistory": [],
    "estimatedEta": "24 hours",
}


def _escalate(client, **overrides):
    response = client.post("/v1/support/escalate", json={**ESCALATION, **overrides})
    assert response.status_code == 200
    return response.json()["escalationId"]


def _escalation(client, escalation_id):
    escalations = client.get("/v1/support/escalations").json()["escalations"]
    return next(item for item in escalations if item["id"] == escalation_id)


def test_health(client):
    response = client.get("/v1/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_create_escalation(client, fake_email, fake_sms):
    response = client.post("/v1/support/escalate", json=ESCALATION)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["escalationId"]

    stored = _escalation(client, body["escalationId"])
    assert stored["status"] == "pending"
    assert stored["followupCount"] == 0
    assert stored["urgency"] == "normal"
    assert stored["chatHistory"] == ESCALATION["chatHistory"]
    assert len(fake_email.sent) == 1
    assert len(fake_sms.sent) == 1


def test_create_escalation_missing_fields(client):
    response = client.post("/v1/support/escalate", json={"userId": "user-42"})

    assert response.status_code == 400
    assert response.json() == {"error": "Missing required fields"}


def test_create_escalation_unknown_urgency(client):
    response = client.post("/v1/support/escalate", json={**ESCALATION, "urgency": "apocalyptic"})

    assert response.status_code == 400
    assert "urgency" in response.json()["error"]


def test_malformed_body_is_a_bad_request(client):
    response = client.post("/v1/support/escalate", json=["not", "an", "object"])

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request"


def test_create_escalation_still_succeeds_when_alerts_fail(client, fake_email, fake_sms):
    fake_email.fail = True
    fake_sms.fail = True

    response = client.post("/v1/support/escalate", json=ESCALATION)

    assert response.status_code == 200
    assert response.json()["success"] is True


def test_accept_escalation(client, clock):
    escalation_id = _escalate(client)
    clock.advance(minutes=3)

    response = client.post(
        "/v1/support/accept",
        json={"escalationId": escalation_id, "connectionMethod": "phone"},
    )

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "Sam is going to call you shortly. Make sure your phone is nearby!",
    }
    stored = _escalation(client, escalation_id)
    assert stored["status"] == "accepted"
    assert stored["connectionMethod"] == "phone"
    assert stored["acceptedAt"] is not None


def test_accept_is_idempotent_and_rejects_a_second_method(client):
    escalation_id = _escalate(client)
    payload = {"escalationId": escalation_id, "connectionMethod": "chat"}

    first = client.post("/v1/support/accept", json=payload)
    accepted_at = _escalation(client, escalation_id)["acceptedAt"]
    second = client.post("/v1/support/accept", json=payload)
    conflict = client.post("/v1/support/accept", json={**payload, "connectionMethod": "zoom"})

    assert first.json() == second.json()
    assert _escalation(client, escalation_id)["acceptedAt"] == accepted_at
    assert conflict.status_code == 409
    assert "chat" in conflict.json()["error"]


def test_accept_errors(client):
    escalation_id = _escalate(client)

    missing = client.post("/v1/support/accept", json={"escalationId": escalation_id})
    unknown = client.post("/v1/support/accept", json={"escalationId": "nope", "connectionMethod": "chat"})
    bad_method = client.post(
        "/v1/support/accept",
        json={"escalationId": escalation_id, "connectionMethod": "fax"},
    )

    assert missing.status_code == 400
    assert unknown.status_code == 404
    assert unknown.json() == {"error": "Escalation not found"}
    assert bad_method.status_code == 400


def test_list_escalations_newest_first(client, clock):
    older = _escalate(client, userId="user-1")
    clock.advance(minutes=1)
    newer = _escalate(client, userId="user-2")

    response = client.get("/v1/support/escalations")

    assert response.status_code == 200
    ids = [item["id"] for item in response.json()["escalations"]]
    assert ids == [newer, older]


def test_followup_cron_requires_bearer_secret(client):
    missing = client.post("/v1/support/followup-cron")
    wrong = client.post("/v1/support/followup-cron", headers={"Authorization": "Bearer nope"})

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert wrong.json() == {"error": "Unauthorized"}


def test_followup_cron_runs_a_pass(client, clock, fake_conversation):
    escalation_id = _escalate(client)

    early = client.post("/v1/support/followup-cron", headers=CRON_HEADERS)
    assert early.json()["checked"] == 0

    clock.advance(minutes=16)
    response = client.post("/v1/support/followup-cron", headers=CRON_HEADERS)

    assert response.status_code == 200
    assert response.json() == {"success": True, "checked": 1, "due": 1, "realerted": 0, "failed": 0}
    assert _escalation(client, escalation_id)["followupCount"] == 1
    assert "Hang tight" in fake_conversation.sent[-1]["message"]


def test_escalation_scenarios_end_to_end(client, clock, fake_sms):
    escalation_id = _escalate(client)

    for _ in range(3):
        clock.advance(minutes=16)
        assert client.post("/v1/support/followup-cron", headers=CRON_HEADERS).json()["checked"] == 1

    assert "45+ min" in fake_sms.sent[-1]["body"]

    accept = client.post(
        "/v1/support/accept",
        json={"escalationId": escalation_id, "connectionMethod": "phone"},
    )
    assert "call you shortly" in accept.json()["message"]
    before = _escalation(client, escalation_id)

    clock.advance(minutes=16)
    after_pass = client.post("/v1/support/followup-cron", headers=CRON_HEADERS).json()

    assert after_pass["checked"] == 0
    after = _escalation(client, escalation_id)
    assert after["followupCount"] == before["followupCount"] == 3
    assert after["lastFollowupAt"] == before["lastFollowupAt"]


def test_create_and_list_tickets(client, fake_email):
    response = client.post("/v1/support/tickets", json=TICKET)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    ticket = body["ticket"]
    assert ticket["ticketNumber"].startswith("TKT-")
    assert ticket["estimatedEta"] == "24 hours"
    assert set(ticket) == {"id", "ticketNumber", "estimatedEta"}

    listed = client.get("/v1/support/tickets").json()["tickets"]
    assert listed[0]["ticketNumber"] == ticket["ticketNumber"]
    assert listed[0]["priority"] == "normal"
    assert listed[0]["status"] == "open"
    assert ticket["ticketNumber"] in fake_email.sent[-1]["subject"]


def test_ticket_validation_and_status_filter(client):
    missing = client.post("/v1/support/tickets", json={**TICKET, "category": ""})
    bad_priority = client.post("/v1/support/tickets", json={**TICKET, "priority": "someday"})
    client.post("/v1/support/tickets", json=TICKET)

    assert missing.status_code == 400
    assert bad_priority.status_code == 400
    assert len(client.get("/v1/support/tickets", params={"status": "open"}).json()["tickets"]) == 1
    assert client.get("/v1/support/tickets", params={"status": "closed"}).json()["tickets"] == []
    assert client.get("/v1/support/tickets", params={"status": "archived"}).status_code == 400


def test_read_only_routes_do_not_build_a_dispatcher(client):
    from supportdesk.api.deps import get_dispatcher

    def _unavailable():
        raise AssertionError("dispatcher requested by a read-only route")

    client.app.dependency_overrides[get_dispatcher] = _unavailable

    assert client.get("/v1/support/tickets").status_code == 200
    assert client.get("/v1/support/escalations").status_code == 200
    assert client.get("/v1/metrics").status_code == 200
