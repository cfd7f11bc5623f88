#!/usr/bin/env python3
"""Walk the seeded projectile-motion lesson against a running service.

RUN:  python scripts/demo_lesson_walkthrough.py

Prerequisites:
  - The API must be running in dev without DATABASE_URL, so the sample
    lesson is seeded:  uvicorn lessonpath.main:app --port 8000
  - Optionally PREMIUM_STUDENT_IDS=demo-premium to see the premium branch open.

Prints each step's status, then the instructor analytics for the lesson.
"""

from __future__ import annotations

import sys

import httpx

BASE_URL = "http://localhost:8000"
LESSON_ID = "00000000-0000-0000-0000-00000000a001"
LAUNCH = "00000000-0000-0000-0000-00000000b001"
ANGLE = "00000000-0000-0000-0000-00000000b002"


def _student(student_id: str) -> str:
    return f"{BASE_URL}/v1/lessons/{LESSON_ID}/students/{student_id}"


def _advance(
    client: httpx.Client, student_id: str, scene_id: str, text: str
) -> httpx.Response:
    return client.post(
        f"{_student(student_id)}/advance",
        json={"from_scene_id": scene_id, "decision_text": text},
    )


def main() -> None:
    with httpx.Client(timeout=5.0) as client:
        try:
            r = client.post(f"{_student('demo-1')}/enter")
        except httpx.ConnectError:
            print(f"Cannot reach {BASE_URL}; start the API first.")
            sys.exit(1)
        if r.status_code == 404:
            print("Sample lesson not found; run in dev without DATABASE_URL.")
            sys.exit(1)
        print(f"1. enter                    -> {r.status_code}  at {r.json()['scene']['title']}")

        r = _advance(client, "demo-1", LAUNCH, "Launch angle")
        print(f"2. 'Launch angle'           -> {r.status_code}  at {r.json()['scene']['title']}")

        r = client.post(f"{_student('demo-1')}/ai-help", json={"scene_id": ANGLE})
        print(f"3. ai-help                  -> {r.status_code}")

        r = _advance(client, "demo-1", ANGLE, "Wrap up")
        body = r.json()
        print(
            f"4. 'Wrap up'                -> {r.status_code}  at {body['scene']['title']}"
            f"  complete={body['complete']}"
        )

        client.post(f"{_student('demo-2')}/enter")
        r = _advance(client, "demo-2", LAUNCH, "Air resistance")
        print(f"5. 'Air resistance' (free)  -> {r.status_code}  {r.json().get('detail', '')}")

        r = client.post(
            f"{_student('demo-2')}/answers", json={"answers": {"range": "14.7 m"}}
        )
        print(f"6. answers                  -> {r.status_code}  {r.json()['answers']}")

        summary = client.get(f"{BASE_URL}/v1/lessons/{LESSON_ID}/analytics").json()

    print()
    print("Scene visits")
    for visit in summary["scene_visits"]:
        print(f"  {visit['title']:<16} {visit['visit_count']}")
    print("Decisions")
    for d in summary["decision_counts"]:
        print(f"  {d['decision_text']:<16} {d['choice_count']}")
    print(f"AI help requests: {summary['ai_help_requests']}")
    print(f"Denied attempts:  {summary['access_denied_attempts']}")


if __name__ == "__main__":
    main()
