import json

from avatar_jobs.api import webhooks as webhook_routes
from avatar_jobs.core.errors import ProviderRejectedError, ProviderUnavailableError
from avatar_jobs.services.job_store import JobStore
from tests.helpers import OTHER, OWNER, owner_headers, signed_headers

WEBHOOK_URL = "/webhooks/avatar-video"


def _submit(client, payload_ref="script text", **extra):
    return client.post("/jobs", json={"payload_ref": payload_ref, **extra}, headers=owner_headers())


def _completed_body(video_id="vid_1"):
    return json.dumps(
        {
            "event_type": "avatar_video.success",
            "event_data": {"video_id": video_id, "url": "https://cdn.test/v.mp4", "duration": 42},
        }
    ).encode()


def test_submit_job_is_processing(client, active_profile, fake_client):
    r = _submit(client, title="Flu season")
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    assert body["status"] == "processing"
    assert body["external_correlation_id"] == "vid_1"
    assert fake_client.submissions[0]["callback_id"] == body["job_id"]

    g = client.get(f"/jobs/{body['job_id']}", headers=owner_headers())
    assert g.status_code == 200
    job = g.json()
    assert job["status"] == "processing"
    assert job["title"] == "Flu season"
    assert job["result"] is None
    assert job["error_detail"] is None


def test_webhook_completes_job(client, active_profile):
    job_id = _submit(client).json()["job_id"]
    body = _completed_body()

    r = client.post(WEBHOOK_URL, content=body, headers=signed_headers(body))
    assert r.status_code == 200
    assert r.json() == {"received": True, "ok": True, "job_id": job_id, "status": "completed"}

    job = client.get(f"/jobs/{job_id}", headers=owner_headers()).json()
    assert job["status"] == "completed"
    assert job["progress"] == 100
    assert job["result"] == {"video_url": "https://cdn.test/v.mp4", "duration": 42}
    assert job["completed_at"] is not None


def test_webhook_redelivery_is_harmless(client, active_profile):
    job_id = _submit(client).json()["job_id"]
    body = _completed_body()
    client.post(WEBHOOK_URL, content=body, headers=signed_headers(body))
    first = client.get(f"/jobs/{job_id}", headers=owner_headers()).json()

    r = client.post(WEBHOOK_URL, content=body, headers=signed_headers(body))
    assert r.status_code == 200
    assert r.json()["status"] == "completed"

    again = client.get(f"/jobs/{job_id}", headers=owner_headers()).json()
    assert again == first


def test_status_of_completed_job_does_not_poll(client, active_profile, fake_client):
    job_id = _submit(client).json()["job_id"]
    body = _completed_body()
    client.post(WEBHOOK_URL, content=body, headers=signed_headers(body))

    client.get(f"/jobs/{job_id}", headers=owner_headers())
    assert fake_client.polls == []


def test_orphaned_webhook_is_acknowledged(client, active_profile, db):
    job_id = _submit(client).json()["job_id"]
    body = _completed_body("vid_unknown")

    r = client.post(WEBHOOK_URL, content=body, headers=signed_headers(body))
    assert r.status_code == 200
    assert r.json()["received"] is True
    assert r.json()["ok"] is False

    assert JobStore(db).get(job_id).status == "processing"


def test_tampered_webhook_is_rejected(client, active_profile, db):
    job_id = _submit(client).json()["job_id"]
    body = _completed_body()
    headers = signed_headers(body)
    tampered = body.replace(b"https://cdn.test/v.mp4", b"https://evil.test/v.mp4")

    r = client.post(WEBHOOK_URL, content=tampered, headers=headers)
    assert r.status_code == 401
    assert r.json()["received"] is False

    job = JobStore(db).get(job_id)
    assert job.status == "processing"
    assert job.result is None


def test_unsigned_webhook_is_rejected(client, active_profile):
    _submit(client)
    r = client.post(WEBHOOK_URL, content=_completed_body(), headers={"Content-Type": "application/json"})
    assert r.status_code == 401


def test_malformed_webhook_is_acknowledged(client):
    body = b'{"event_type": "avatar_video.success"}'
    r = client.post(WEBHOOK_URL, content=body, headers=signed_headers(body))
    assert r.status_code == 200
    assert r.json() == {"received": True, "ok": False, "error": "malformed payload"}


def test_deeply_nested_webhook_is_acknowledged(client):
    body = b"[" * 200000 + b"]" * 200000

    r = client.post(WEBHOOK_URL, content=body, headers=signed_headers(body))
    assert r.status_code == 200
    assert r.json() == {"received": True, "ok": False, "error": "malformed payload"}


def test_unexpected_parse_failure_is_acknowledged(client, monkeypatch):
    def explode(raw_body, signature=""):
        raise RuntimeError("decoder bug")

    monkeypatch.setattr(webhook_routes, "parse_event", explode)
    body = _completed_body()

    r = client.post(WEBHOOK_URL, content=body, headers=signed_headers(body))
    assert r.status_code == 200
    assert r.json()["received"] is True
    assert r.json()["ok"] is False


def test_failed_webhook_exposes_error_only(client, active_profile):
    job_id = _submit(client).json()["job_id"]
    body = json.dumps(
        {"event_type": "avatar_video.fail", "event_data": {"video_id": "vid_1", "msg": "Voice clone missing"}}
    ).encode()
    client.post(WEBHOOK_URL, content=body, headers=signed_headers(body))

    job = client.get(f"/jobs/{job_id}", headers=owner_headers()).json()
    assert job["status"] == "failed"
    assert job["error_detail"] == "Voice clone missing"
    assert job["result"] is None


def test_webhook_health_check(client):
    r = client.get(WEBHOOK_URL)
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_get_job_of_other_owner_is_forbidden(client, active_profile):
    job_id = _submit(client).json()["job_id"]

    r = client.get(f"/jobs/{job_id}", headers=owner_headers(OTHER))
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "forbidden"


def test_get_unknown_job_is_not_found(client):
    r = client.get("/jobs/does-not-exist", headers=owner_headers())
    assert r.status_code == 404
    assert r.json() == {
        "ok": False,
        "error": {"code": "not_found", "message": "Job not found: does-not-exist", "retryable": False},
    }


def test_missing_identity_is_unauthorized(client):
    r = client.get("/jobs")
    assert r.status_code == 401
    assert r.json()["ok"] is False
    assert r.json()["error"]["code"] == "unauthorized"


def test_empty_payload_is_validation_error(client, active_profile):
    r = _submit(client, payload_ref="   ")
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "validation_error"


def test_empty_payload_without_avatar_is_still_validation_error(client, fake_client):
    r = _submit(client, payload_ref="")
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "validation_error"
    assert fake_client.submissions == []


def test_submit_without_avatar_is_not_configured(client, fake_client):
    r = _submit(client)
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "not_configured"
    assert fake_client.submissions == []


def test_provider_unavailable_is_retryable(client, active_profile, fake_client):
    fake_client.submit_error = ProviderUnavailableError("Video provider timed out")

    r = _submit(client)
    assert r.status_code == 503
    assert r.json()["error"]["retryable"] is True


def test_provider_rejection_is_not_retryable(client, active_profile, fake_client):
    fake_client.submit_error = ProviderRejectedError("avatar not found")

    r = _submit(client)
    assert r.status_code == 502
    assert r.json()["error"]["retryable"] is False

    listing = client.get("/jobs", headers=owner_headers()).json()
    assert listing["total"] == 1
    assert listing["jobs"][0]["status"] == "failed"
    assert listing["jobs"][0]["error_detail"] == "avatar not found"


def test_list_jobs_scoped_to_owner(client, active_profile, db):
    _submit(client, "one")
    _submit(client, "two")
    JobStore(db).create(OTHER, "someone else's")

    r = client.get("/jobs", headers=owner_headers())
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    assert body["total"] == 2
    assert len(body["jobs"]) == 2

    filtered = client.get("/jobs", params={"status": "completed"}, headers=owner_headers()).json()
    assert filtered["total"] == 0


def test_list_jobs_pagination(client, active_profile):
    for i in range(3):
        _submit(client, f"script {i}")

    body = client.get("/jobs", params={"limit": 2, "offset": 2}, headers=owner_headers()).json()
    assert body["total"] == 3
    assert len(body["jobs"]) == 1
