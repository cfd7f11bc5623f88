from __future__ import annotations

from fastapi.testclient import TestClient

from lessonpath.services.entitlements import entitlements
from tests.conftest import (
    LESSON_ID,
    PREMIUM_STUDENT,
    SCENE_A,
    SCENE_B,
    SCENE_P,
    SCENE_X,
    STUDENT,
)

BASE = f"/v1/lessons/{LESSON_ID}/students/{STUDENT}"


def _advance(client: TestClient, from_scene: str, text: str, base: str = BASE):
    return client.post(
        f"{base}/advance", json={"from_scene_id": from_scene, "decision_text": text}
    )


def test_enter_returns_root_scene_and_progress(client: TestClient) -> None:
    resp = client.post(f"{BASE}/enter")

    assert resp.status_code == 200
    body = resp.json()
    assert body["scene"]["id"] == SCENE_A
    assert body["progress"]["current_scene_id"] == SCENE_A
    assert body["event"]["event_type"] == "lesson_entered"
    assert body["event"]["from_scene_id"] is None
    assert body["advanced"] is True
    assert body["complete"] is False


def test_enter_twice_resumes(client: TestClient) -> None:
    client.post(f"{BASE}/enter")
    _advance(client, SCENE_A, "next")

    body = client.post(f"{BASE}/enter").json()

    assert body["scene"]["id"] == SCENE_B
    assert body["event"] is None
    assert body["advanced"] is False


def test_enter_unknown_lesson_is_404(client: TestClient) -> None:
    resp = client.post(f"/v1/lessons/nope/students/{STUDENT}/enter")
    assert resp.status_code == 404


def test_advance_and_finish(client: TestClient) -> None:
    client.post(f"{BASE}/enter")

    moved = _advance(client, SCENE_A, "next")
    assert moved.status_code == 200
    assert moved.json()["scene"]["id"] == SCENE_B
    assert moved.json()["event"]["decision_text"] == "next"

    finished = _advance(client, SCENE_B, "finish")
    assert finished.status_code == 200
    body = finished.json()
    assert body["advanced"] is False
    assert body["complete"] is True
    assert body["progress"]["current_scene_id"] == SCENE_B
    assert body["event"]["to_scene_id"] is None


def test_advance_unknown_label_is_422(client: TestClient) -> None:
    client.post(f"{BASE}/enter")
    resp = _advance(client, SCENE_A, "NEXT")
    assert resp.status_code == 422
    assert "NEXT" in resp.json()["detail"]


def test_advance_missing_body_field_is_422(client: TestClient) -> None:
    resp = client.post(f"{BASE}/advance", json={"from_scene_id": SCENE_A})
    assert resp.status_code == 422


def test_advance_unknown_scene_is_404(client: TestClient) -> None:
    assert _advance(client, "missing", "next").status_code == 404


def test_advance_from_other_lesson_scene_is_409(client: TestClient) -> None:
    assert _advance(client, SCENE_X, "next").status_code == 409


def test_premium_scene_is_403_for_regular_student(client: TestClient) -> None:
    client.post(f"{BASE}/enter")

    resp = _advance(client, SCENE_A, "go deeper")

    assert resp.status_code == 403
    assert "premium" in resp.json()["detail"]
    progress = client.get(f"{BASE}/progress").json()
    assert progress["current_scene_id"] == SCENE_A
    events = client.get(f"/v1/lessons/{LESSON_ID}/events").json()
    assert events[-1]["event_type"] == "access_denied"
    assert events[-1]["to_scene_id"] is None


def test_premium_scene_opens_for_premium_student(client: TestClient) -> None:
    base = f"/v1/lessons/{LESSON_ID}/students/{PREMIUM_STUDENT}"
    client.post(f"{base}/enter")

    resp = _advance(client, SCENE_A, "go deeper", base)

    assert resp.status_code == 200
    assert resp.json()["scene"]["id"] == SCENE_P


def test_premium_grant_via_entitlements(client: TestClient) -> None:
    client.post(f"{BASE}/enter")
    entitlements.grant(STUDENT)  # type: ignore[attr-defined]
    assert _advance(client, SCENE_A, "go deeper").status_code == 200


def test_ai_help_is_accepted_and_logged(client: TestClient) -> None:
    client.post(f"{BASE}/enter")

    resp = client.post(f"{BASE}/ai-help", json={"scene_id": SCENE_A})

    assert resp.status_code == 202
    body = resp.json()
    assert body["event_type"] == "ai_help_requested"
    assert body["from_scene_id"] == body["to_scene_id"] == SCENE_A
    assert client.get(f"{BASE}/progress").json()["current_scene_id"] == SCENE_A


def test_ai_help_unknown_scene_is_404(client: TestClient) -> None:
    resp = client.post(f"{BASE}/ai-help", json={"scene_id": "missing"})
    assert resp.status_code == 404


def test_progress_before_entry_is_404(client: TestClient) -> None:
    assert client.get(f"{BASE}/progress").status_code == 404


def test_answers_and_uploads_merge(client: TestClient) -> None:
    client.post(f"{BASE}/enter")
    client.post(f"{BASE}/answers", json={"answers": {"q1": "4.9 m"}})

    resp = client.post(
        f"{BASE}/answers",
        json={"answers": {"q2": 30}, "uploaded_files": {"sketch": "uploads/s.png"}},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["answers"] == {"q1": "4.9 m", "q2": 30}
    assert body["uploaded_files"] == {"sketch": "uploads/s.png"}
    assert body["current_scene_id"] == SCENE_A


def test_answers_before_entry_is_409(client: TestClient) -> None:
    resp = client.post(f"{BASE}/answers", json={"answers": {"q1": "x"}})
    assert resp.status_code == 409


def test_empty_answers_body_is_422(client: TestClient) -> None:
    client.post(f"{BASE}/enter")
    assert client.post(f"{BASE}/answers", json={}).status_code == 422
