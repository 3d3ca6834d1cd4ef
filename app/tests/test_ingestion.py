import pytest

from app.core.errors import PersistenceFailure
from app.main import app
from app.services.store import get_capture_log


def captured_requests(client, webhook_id: str) -> list[dict]:
    response = client.get(f"/api/v1/webhooks/{webhook_id}")
    assert response.status_code == 200, response.text
    return response.json()["requests"]


def test_post_is_answered_with_configured_response_and_captured(client, create_webhook):
    webhook = create_webhook(
        path="test-webhook-1",
        responseStatus=201,
        responseData='{"success": true, "message": "Hello"}',
    )

    response = client.post("/webhook/test-webhook-1", json={"foo": "bar"})
    assert response.status_code == 201
    assert response.json() == {"success": True, "message": "Hello"}

    history = captured_requests(client, webhook["id"])
    assert len(history) == 1
    assert history[0]["method"] == "POST"
    assert history[0]["body"]["foo"] == "bar"
    assert history[0]["webhookId"] == webhook["id"]


@pytest.mark.parametrize("method", ["GET", "POST", "PUT", "DELETE", "PATCH"])
def test_unknown_path_is_not_found_for_every_method(client, method):
    response = client.request(method, "/webhook/not/found")
    assert response.status_code == 404
    assert response.json() == {"error": "Webhook not found"}


def test_multi_segment_path_is_joined(client, create_webhook):
    create_webhook(path="team/orders/created", responseData={"ok": 1})

    response = client.post("/webhook/team/orders/created", json={})
    assert response.status_code == 200
    assert response.json() == {"ok": 1}


def test_empty_segments_are_ignored_when_matching(client, create_webhook):
    create_webhook(path="team/orders", responseData={"ok": 2})

    assert client.post("/webhook/team//orders", json={}).json() == {"ok": 2}
    assert client.post("/webhook/team/orders/", json={}).json() == {"ok": 2}


def test_disabled_webhook_returns_503_without_capture(client, create_webhook):
    webhook = create_webhook(path="sleepy", enabled=False)

    response = client.post("/webhook/sleepy", json={"a": 1})
    assert response.status_code == 503
    assert response.json() == {"error": "Webhook is disabled"}
    assert captured_requests(client, webhook["id"]) == []


def test_method_mismatch_returns_405_without_capture(client, create_webhook):
    webhook = create_webhook(path="post-only", method="POST")

    response = client.put("/webhook/post-only", json={"a": 1})
    assert response.status_code == 405
    assert response.json() == {"error": "Method PUT not allowed"}
    assert captured_requests(client, webhook["id"]) == []


def test_any_method_accepts_every_verb_and_records_actual_verb(client, create_webhook):
    webhook = create_webhook(path="catch-all", method="ANY")

    for method in ["GET", "POST", "PUT", "DELETE", "PATCH"]:
        response = client.request(method, "/webhook/catch-all")
        assert response.status_code == 200, method

    methods = {item["method"] for item in captured_requests(client, webhook["id"])}
    assert methods == {"GET", "POST", "PUT", "DELETE", "PATCH"}


def test_bearer_auth(client, create_webhook):
    webhook = create_webhook(
        path="secure-bearer",
        responseStatus=202,
        responseData={"accepted": True},
        authEnabled=True,
        authType="bearer",
        authToken="T",
    )

    ok = client.post("/webhook/secure-bearer", json={}, headers={"Authorization": "Bearer T"})
    assert ok.status_code == 202
    assert ok.json() == {"accepted": True}
    assert len(captured_requests(client, webhook["id"])) == 1

    wrong = client.post("/webhook/secure-bearer", json={}, headers={"Authorization": "Bearer t"})
    assert wrong.status_code == 401
    assert wrong.json() == {"error": "Unauthorized"}
    assert len(captured_requests(client, webhook["id"])) == 2

    missing = client.post("/webhook/secure-bearer", json={})
    assert missing.status_code == 401
    assert len(captured_requests(client, webhook["id"])) == 3


def test_query_auth(client, create_webhook):
    webhook = create_webhook(path="secure-query", authEnabled=True, authType="query", authToken="T")

    assert client.post("/webhook/secure-query?token=T", json={}).status_code == 200
    assert client.post("/webhook/secure-query?token=wrong", json={}).status_code == 401
    assert client.post("/webhook/secure-query", json={}).status_code == 401

    history = captured_requests(client, webhook["id"])
    assert len(history) == 3
    statuses = sorted(item["headers"]["x-webhook-response-status"] for item in history)
    assert statuses == ["200", "401", "401"]


def test_query_auth_reads_the_first_token_but_captures_the_last(client, create_webhook):
    webhook = create_webhook(path="dup-token", authEnabled=True, authType="query", authToken="T")

    assert client.post("/webhook/dup-token?token=wrong&token=T", json={}).status_code == 401
    assert client.post("/webhook/dup-token?token=T&token=wrong", json={}).status_code == 200

    queries = [item["query"] for item in captured_requests(client, webhook["id"])]
    assert sorted(query["token"] for query in queries) == ["T", "wrong"]


def test_no_content_status_is_sent_without_a_body(client, create_webhook):
    webhook = create_webhook(path="no-content", responseStatus=204, responseData={"ignored": True})

    response = client.post("/webhook/no-content", json={"a": 1})
    assert response.status_code == 204
    assert response.content == b""

    history = captured_requests(client, webhook["id"])
    assert history[0]["headers"]["x-webhook-response-status"] == "204"
    assert history[0]["body"] == {"a": 1}


def test_not_modified_status_is_sent_without_a_body(client, create_webhook):
    create_webhook(path="not-modified", method="GET", responseStatus=304)

    response = client.get("/webhook/not-modified")
    assert response.status_code == 304
    assert response.content == b""


def test_status_header_is_recorded_but_not_echoed(client, create_webhook):
    webhook = create_webhook(path="status-header", responseStatus=418, responseData={"teapot": True})

    response = client.post("/webhook/status-header", json={})
    assert response.status_code == 418
    assert "x-webhook-response-status" not in response.headers

    capture = captured_requests(client, webhook["id"])[0]
    assert capture["headers"]["x-webhook-response-status"] == "418"


def test_malformed_json_is_captured_with_placeholder(client, create_webhook):
    webhook = create_webhook(path="broken-json", responseStatus=200, responseData={"fine": True})

    response = client.post(
        "/webhook/broken-json",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 200
    assert response.json() == {"fine": True}

    capture = captured_requests(client, webhook["id"])[0]
    assert capture["body"] == {"error": "Invalid JSON"}


def test_non_json_body_is_wrapped_as_raw_text(client, create_webhook):
    webhook = create_webhook(path="form-hook")

    client.post("/webhook/form-hook", content=b"a=1&b=2", headers={"Content-Type": "application/x-www-form-urlencoded"})
    client.post("/webhook/form-hook")

    bodies = [item["body"] for item in captured_requests(client, webhook["id"])]
    assert {"raw": "a=1&b=2"} in bodies
    assert {} in bodies


def test_get_request_captures_query_and_empty_body(client, create_webhook):
    webhook = create_webhook(path="get-hook", method="GET")

    response = client.get("/webhook/get-hook?event=push&id=42")
    assert response.status_code == 200

    capture = captured_requests(client, webhook["id"])[0]
    assert capture["body"] == {}
    assert capture["query"] == {"event": "push", "id": "42"}


def test_response_data_is_returned_unchanged(client, create_webhook):
    create_webhook(path="round-trip", responseData={"a": 1})

    first = client.post("/webhook/round-trip", json={"a": 2})
    second = client.post("/webhook/round-trip", json={"a": 3})
    assert first.json() == {"a": 1}
    assert second.json() == {"a": 1}


def test_non_object_response_data_is_returned_verbatim(client, create_webhook):
    create_webhook(path="list-data", responseData=[1, "two", None])

    assert client.post("/webhook/list-data", json={}).json() == [1, "two", None]


def test_capture_failure_surfaces_as_500(client, create_webhook):
    create_webhook(path="store-down")

    class BrokenCaptureLog:
        def append(self, **_):
            raise PersistenceFailure()

    app.dependency_overrides[get_capture_log] = lambda: BrokenCaptureLog()

    response = client.post("/webhook/store-down", json={})
    assert response.status_code == 500
    assert response.json() == {"error": "Internal Server Error"}


def test_unexpected_failure_is_reported_as_json_500(client, create_webhook):
    create_webhook(path="store-crash")

    class CrashingCaptureLog:
        def append(self, **_):
            raise RuntimeError("disk on fire")

    app.dependency_overrides[get_capture_log] = lambda: CrashingCaptureLog()

    response = client.post("/webhook/store-crash", json={})
    assert response.status_code == 500
    assert response.json() == {"error": "Internal Server Error"}
