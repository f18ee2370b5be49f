"""站内通知路由测试"""

ADMIN = {"X-Actor-Id": "admin-1"}
ALICE = {"X-Actor-Id": "alice"}
BOB = {"X-Actor-Id": "bob"}


async def _assign_alice(client, test_app) -> str:
    resp = await client.post(
        "/api/tasks",
        json={"title": "Renew TLS certificates", "assignee_ids": ["alice"]},
        headers=ADMIN,
    )
    await test_app.state.dispatch_runner.drain()
    return resp.json()["task"]["task_id"]


class TestNotificationRoutes:
    async def test_list_own_notifications(self, client, test_app):
        task_id = await _assign_alice(client, test_app)

        resp = await client.get("/api/notifications", headers=ALICE)

        assert resp.status_code == 200
        [note] = resp.json()["notifications"]
        assert note["kind"] == "task_assigned"
        assert note["link"] == f"/tasks/{task_id}"
        assert note["is_read"] is False

        resp = await client.get("/api/notifications", headers=BOB)
        assert resp.json()["notifications"] == []

    async def test_mark_read(self, client, test_app):
        await _assign_alice(client, test_app)
        resp = await client.get("/api/notifications", headers=ALICE)
        notification_id = resp.json()["notifications"][0]["notification_id"]

        resp = await client.post(f"/api/notifications/{notification_id}/read", headers=ALICE)
        assert resp.status_code == 200

        resp = await client.get(
            "/api/notifications", params={"unread_only": "true"}, headers=ALICE
        )
        assert resp.json()["notifications"] == []

    async def test_cannot_mark_someone_elses(self, client, test_app):
        await _assign_alice(client, test_app)
        resp = await client.get("/api/notifications", headers=ALICE)
        notification_id = resp.json()["notifications"][0]["notification_id"]

        resp = await client.post(f"/api/notifications/{notification_id}/read", headers=BOB)

        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NOTIFICATION_NOT_FOUND"

    async def test_requires_actor(self, client):
        resp = await client.get("/api/notifications")
        assert resp.status_code == 401
