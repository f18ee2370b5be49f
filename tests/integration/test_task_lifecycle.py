"""任务全生命周期集成测试

Pending -> In Progress（无通知）-> Completed（通知全部管理员）
-> Approved（通知指派人）或驳回 -> In Progress（通知指派人）
"""

from unittest.mock import AsyncMock

ROOT = {"X-Actor-Id": "root"}
A = {"X-Actor-Id": "A"}


async def _kinds(app, user_id: str) -> list[str]:
    await app.state.dispatch_runner.drain()
    records = await app.state.store_group.notification_store.list_for_recipient(user_id)
    return sorted(r.kind.value for r in records)


async def _transition(client, task_id: str, to_status: str, headers: dict):
    resp = await client.post(
        f"/api/tasks/{task_id}/transition", json={"to_status": to_status}, headers=headers
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["task"]


class TestLifecycle:
    async def _create(self, client) -> str:
        resp = await client.post(
            "/api/tasks",
            json={"title": "Quarterly access review", "assignee_ids": ["A"]},
            headers=ROOT,
        )
        assert resp.status_code == 201
        return resp.json()["task"]["task_id"]

    async def test_approve_path(self, client, integration_app, outbox: AsyncMock):
        task_id = await self._create(client)
        assert await _kinds(integration_app, "A") == ["task_assigned"]

        task = await _transition(client, task_id, "In Progress", A)
        assert task["status"] == "In Progress"
        assert await _kinds(integration_app, "A") == ["task_assigned"]
        assert await _kinds(integration_app, "root") == []

        await _transition(client, task_id, "Completed", A)
        assert await _kinds(integration_app, "root") == ["task_completed_for_approval"]
        assert await _kinds(integration_app, "ops") == ["task_completed_for_approval"]

        task = await _transition(client, task_id, "Approved", ROOT)
        assert task["status"] == "Approved"
        assert await _kinds(integration_app, "A") == ["task_approved", "task_assigned"]
        # 触发者 root 不会收到自己批准的通知
        assert await _kinds(integration_app, "root") == ["task_completed_for_approval"]

        resp = await client.post(
            f"/api/tasks/{task_id}/transition", json={"to_status": "In Progress"}, headers=ROOT
        )
        assert resp.status_code == 409

        sent_to = sorted(call.args[0].to for call in outbox.send.await_args_list)
        assert sent_to == [
            "avery@example.com",
            "avery@example.com",
            "ops@example.com",
            "root@example.com",
        ]

    async def test_reject_path(self, client, integration_app):
        task_id = await self._create(client)
        await _transition(client, task_id, "Completed", A)

        task = await _transition(client, task_id, "In Progress", ROOT)

        assert task["status"] == "In Progress"
        assert await _kinds(integration_app, "A") == ["task_assigned", "task_rejected"]

        # 驳回后可以再次提交
        await _transition(client, task_id, "Completed", A)
        assert await _kinds(integration_app, "ops") == [
            "task_completed_for_approval",
            "task_completed_for_approval",
        ]


class TestCollaboration:
    async def test_comments_logs_and_reassignment(self, client, integration_app):
        resp = await client.post(
            "/api/tasks",
            json={"title": "Vendor onboarding", "assignee_ids": ["A", "B"]},
            headers=ROOT,
        )
        task_id = resp.json()["task"]["task_id"]

        resp = await client.post(
            f"/api/tasks/{task_id}/comments", json={"body": "Kickoff notes attached"}, headers=A
        )
        assert resp.status_code == 201

        resp = await client.post(
            f"/api/tasks/{task_id}/logs",
            json={"hours_spent": 1.5, "description": "Collected vendor tax forms"},
            headers=A,
        )
        assert resp.status_code == 201

        assert await _kinds(integration_app, "B") == [
            "new_comment_on_task",
            "new_log",
            "task_assigned",
        ]
        assert await _kinds(integration_app, "root") == ["new_comment_on_task", "new_log"]
        assert await _kinds(integration_app, "A") == ["task_assigned"]

        resp = await client.put(
            f"/api/tasks/{task_id}/assignees", json={"assignee_ids": ["B", "C"]}, headers=ROOT
        )
        assert resp.status_code == 200
        assert await _kinds(integration_app, "C") == ["task_assigned"]
        assert await _kinds(integration_app, "B") == [
            "new_comment_on_task",
            "new_log",
            "task_assigned",
        ]

        detail = (await client.get(f"/api/tasks/{task_id}")).json()["task"]
        assert [c["body"] for c in detail["comments"]] == ["Kickoff notes attached"]
        assert detail["logs"][0]["hours_spent"] == 1.5
