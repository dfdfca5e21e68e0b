from __future__ import annotations

from fastapi.testclient import TestClient

TODOS = "/api/v1/todos"


def _create_task(client: TestClient, title: str = "Plan trip") -> int:
    response = client.post(TODOS, json={"title": title})
    assert response.status_code == 201
    return response.json()["id"]


def _create_subtask(client: TestClient, task_id: int, title: str) -> dict:
    response = client.post(f"{TODOS}/{task_id}/subtasks", json={"title": title})
    assert response.status_code == 201, response.text
    return response.json()


def test_subtask_lifecycle(client: TestClient) -> None:
    task_id = _create_task(client)
    first = _create_subtask(client, task_id, "Book flights")
    second = _create_subtask(client, task_id, "Book hotel")

    assert first["completed"] is False
    assert first["task_id"] == task_id

    listed = client.get(f"{TODOS}/{task_id}/subtasks").json()
    assert [s["id"] for s in listed] == [first["id"], second["id"]]

    updated = client.put(
        f"{TODOS}/{task_id}/subtasks/{first['id']}",
        json={"title": "", "completed": True},
    )
    assert updated.status_code == 200
    assert updated.json()["title"] == "Book flights"
    assert updated.json()["completed"] is True

    assert client.get(f"{TODOS}/{task_id}").json()["subtask_progress"] == "1/2"

    assert client.delete(f"{TODOS}/{task_id}/subtasks/{second['id']}").status_code == 204
    assert client.get(f"{TODOS}/{task_id}").json()["subtask_progress"] == "1/1"


def test_update_without_completed_resets_it(client: TestClient) -> None:
    task_id = _create_task(client)
    subtask = _create_subtask(client, task_id, "Pack")
    client.put(f"{TODOS}/{task_id}/subtasks/{subtask['id']}", json={"completed": True})

    body = client.put(
        f"{TODOS}/{task_id}/subtasks/{subtask['id']}", json={"title": "Pack bags"}
    ).json()

    assert body["title"] == "Pack bags"
    assert body["completed"] is False


def test_missing_parent_is_distinct_from_missing_subtask(client: TestClient) -> None:
    task_id = _create_task(client)

    missing_parent = client.post(f"{TODOS}/999/subtasks", json={"title": "orphan"})
    missing_child = client.put(f"{TODOS}/{task_id}/subtasks/999", json={"completed": True})

    assert missing_parent.status_code == 404
    assert missing_parent.json()["resource"] == "task"
    assert missing_child.status_code == 404
    assert missing_child.json()["resource"] == "subtask"


def test_subtask_is_scoped_to_its_parent(client: TestClient) -> None:
    owner = _create_task(client, "owner")
    stranger = _create_task(client, "stranger")
    subtask = _create_subtask(client, owner, "private")

    response = client.delete(f"{TODOS}/{stranger}/subtasks/{subtask['id']}")

    assert response.status_code == 404
    assert len(client.get(f"{TODOS}/{owner}/subtasks").json()) == 1


def test_create_subtask_requires_title(client: TestClient) -> None:
    task_id = _create_task(client)

    response = client.post(f"{TODOS}/{task_id}/subtasks", json={"title": ""})

    assert response.status_code == 400
    assert response.json()["field"] == "title"


def test_deleting_task_removes_its_subtasks(client: TestClient) -> None:
    task_id = _create_task(client)
    _create_subtask(client, task_id, "one")
    _create_subtask(client, task_id, "two")

    assert client.delete(f"{TODOS}/{task_id}").status_code == 204

    assert client.get(f"{TODOS}/{task_id}/subtasks").status_code == 404


def test_subtask_title_longer_than_255_characters_is_rejected(client: TestClient) -> None:
    task_id = _create_task(client)
    subtask = _create_subtask(client, task_id, "short")

    on_create = client.post(f"{TODOS}/{task_id}/subtasks", json={"title": "x" * 256})
    on_update = client.put(
        f"{TODOS}/{task_id}/subtasks/{subtask['id']}", json={"title": "x" * 256}
    )

    assert on_create.status_code == 400
    assert on_create.json()["field"] == "title"
    assert on_update.status_code == 400
    assert client.get(f"{TODOS}/{task_id}/subtasks").json()[0]["title"] == "short"
