from __future__ import annotations

from fastapi.testclient import TestClient

from lessonpath.main import app


def _documented_routes() -> set[tuple[str, str]]:
    return {
        (method.upper(), path)
        for path, operations in app.openapi()["paths"].items()
        for method in operations
    }


def test_app_registers_lesson_routes() -> None:
    routes = _documented_routes()
    student = "/v1/lessons/{lesson_id}/students/{student_id}"
    assert {
        ("GET", "/v1/lessons/{lesson_id}/scenes"),
        ("PUT", "/v1/lessons/{lesson_id}/scenes"),
        ("GET", "/v1/scenes/{scene_id}"),
        ("DELETE", "/v1/scenes/{scene_id}"),
        ("POST", f"{student}/enter"),
        ("POST", f"{student}/advance"),
        ("POST", f"{student}/ai-help"),
        ("GET", f"{student}/progress"),
        ("POST", f"{student}/answers"),
        ("GET", "/v1/lessons/{lesson_id}/events"),
        ("GET", "/v1/lessons/{lesson_id}/analytics"),
    } <= routes


def test_app_registers_observability_routes(client: TestClient) -> None:
    routes = _documented_routes()
    assert {("GET", "/health"), ("GET", "/ready")} <= routes

    # /metrics is kept out of the OpenAPI document.
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "lesson_navigation_total" in resp.text


def test_app_title() -> None:
    assert app.title == "lesson-path-service"
