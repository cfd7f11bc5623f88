from __future__ import annotations

import asyncio
import uuid
from dataclasses import replace

import pytest

from lessonpath.models.lesson import Decision, Scene
from lessonpath.models.progress import ProgressUpdate
from lessonpath.services.errors import InvalidReference, LessonNotFound, SceneNotFound
from tests.conftest import (
    LESSON_ID,
    OTHER_LESSON_ID,
    SCENE_A,
    SCENE_B,
    SCENE_P,
    SCENE_X,
    STUDENT,
    Stack,
)


def test_list_scenes_returns_lesson_scenes_in_insertion_order(stack: Stack) -> None:
    scenes = asyncio.run(stack.graph.list_scenes(LESSON_ID))
    assert [s.id for s in scenes] == [SCENE_A, SCENE_B, SCENE_P]


def test_list_scenes_for_unknown_lesson_is_empty(stack: Stack) -> None:
    assert asyncio.run(stack.graph.list_scenes(str(uuid.uuid4()))) == []


def test_reads_are_idempotent_without_writes(stack: Stack) -> None:
    first = asyncio.run(stack.graph.list_scenes(LESSON_ID))
    second = asyncio.run(stack.graph.list_scenes(LESSON_ID))
    assert first == second
    assert asyncio.run(stack.graph.get_scene(SCENE_B)) == asyncio.run(
        stack.graph.get_scene(SCENE_B)
    )


def test_get_scene_unknown_raises(stack: Stack) -> None:
    with pytest.raises(SceneNotFound):
        asyncio.run(stack.graph.get_scene("missing"))


def test_find_scene_returns_none_for_blank_or_unknown(stack: Stack) -> None:
    assert asyncio.run(stack.graph.find_scene(None)) is None
    assert asyncio.run(stack.graph.find_scene("")) is None
    assert asyncio.run(stack.graph.find_scene("missing")) is None


@pytest.mark.parametrize("draft_id", [None, "", "scene_1718000000"])
def test_upsert_assigns_durable_id_to_drafts(stack: Stack, draft_id: str | None) -> None:
    draft = Scene(
        id=draft_id,
        lesson_id=LESSON_ID,
        title="Momentum",
        content={"body": "p = mv"},
        decisions=(Decision("back", SCENE_A),),
    )
    saved = asyncio.run(stack.graph.upsert_scene(draft))

    uuid.UUID(saved.id)  # raises if not a UUID
    assert replace(saved, id=draft_id) == draft
    assert asyncio.run(stack.graph.get_scene(saved.id)) == saved


def test_upsert_updates_existing_scene_in_place(stack: Stack) -> None:
    original = asyncio.run(stack.graph.get_scene(SCENE_B))
    edited = replace(original, title="Kinetic friction", decisions=())

    saved = asyncio.run(stack.graph.upsert_scene(edited))

    assert saved == edited
    assert asyncio.run(stack.graph.get_scene(SCENE_B)) == edited
    scenes = asyncio.run(stack.graph.list_scenes(LESSON_ID))
    assert [s.id for s in scenes] == [SCENE_A, SCENE_B, SCENE_P]


def test_upsert_unknown_durable_id_raises(stack: Stack) -> None:
    ghost = Scene(id=str(uuid.uuid4()), lesson_id=LESSON_ID, title="ghost")
    with pytest.raises(SceneNotFound):
        asyncio.run(stack.graph.upsert_scene(ghost))


def test_upsert_into_unknown_lesson_raises(stack: Stack) -> None:
    with pytest.raises(LessonNotFound):
        asyncio.run(stack.graph.upsert_scene(Scene(id=None, lesson_id="nope")))


def test_upsert_keeps_dangling_targets_as_authored(stack: Stack) -> None:
    draft = Scene(
        id=None, lesson_id=LESSON_ID, decisions=(Decision("onward", "not-a-scene"),)
    )
    saved = asyncio.run(stack.graph.upsert_scene(draft))
    assert saved.decisions[0].target_scene_id == "not-a-scene"


def test_delete_scene_leaves_incoming_decisions_dangling(stack: Stack) -> None:
    asyncio.run(stack.graph.delete_scene(SCENE_P))

    assert asyncio.run(stack.graph.find_scene(SCENE_P)) is None
    a = asyncio.run(stack.graph.get_scene(SCENE_A))
    assert a.decision_for("go deeper") == Decision("go deeper", SCENE_P)


def test_delete_scene_drops_progress_parked_on_it(stack: Stack) -> None:
    asyncio.run(
        stack.tracker.save_progress(
            ProgressUpdate(student_id=STUDENT, lesson_id=LESSON_ID, current_scene_id=SCENE_B)
        )
    )
    asyncio.run(
        stack.tracker.save_progress(
            ProgressUpdate(student_id="other", lesson_id=LESSON_ID, current_scene_id=SCENE_A)
        )
    )

    asyncio.run(stack.graph.delete_scene(SCENE_B))

    assert asyncio.run(stack.tracker.get_progress(STUDENT, LESSON_ID)) is None
    assert asyncio.run(stack.tracker.get_progress("other", LESSON_ID)) is not None


def test_delete_unknown_scene_raises(stack: Stack) -> None:
    with pytest.raises(SceneNotFound):
        asyncio.run(stack.graph.delete_scene("missing"))


def test_upsert_cannot_move_scene_to_another_lesson(stack: Stack) -> None:
    moved = replace(asyncio.run(stack.graph.get_scene(SCENE_X)), lesson_id=LESSON_ID)
    with pytest.raises(InvalidReference):
        asyncio.run(stack.graph.upsert_scene(moved))
    assert asyncio.run(stack.graph.get_scene(SCENE_X)).lesson_id == OTHER_LESSON_ID
