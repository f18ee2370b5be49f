"""UserStore SQLite 实现 -- 身份提供方的本地 profiles 镜像

get_users_by_ids 允许部分命中：缺失的 id 直接不出现在结果中，不报错。
"""

import aiosqlite

from ..models.actor import Actor, UserProfile

_COLUMNS = "user_id, display_name, email, is_admin, avatar_url"


class SqliteUserStore:
    """IdentityProvider 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def upsert_user(self, profile: UserProfile) -> None:
        """新增或覆盖用户档案"""
        await self._conn.execute(
            f"""
            INSERT INTO profiles ({_COLUMNS}) VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                display_name = excluded.display_name,
                email = excluded.email,
                is_admin = excluded.is_admin,
                avatar_url = excluded.avatar_url
            """,
            (
                profile.user_id,
                profile.display_name,
                profile.email,
                1 if profile.is_admin else 0,
                profile.avatar_url,
            ),
        )
        await self._conn.commit()

    async def get_user(self, user_id: str) -> UserProfile | None:
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM profiles WHERE user_id = ?",
            (user_id,),
        )
        row = await cursor.fetchone()
        return self._row_to_profile(row) if row else None

    async def get_actor(self, user_id: str) -> Actor | None:
        """将已认证的 user_id 解析为 Actor"""
        profile = await self.get_user(user_id)
        return profile.to_actor() if profile else None

    async def get_users_by_ids(self, user_ids: set[str]) -> list[UserProfile]:
        """批量查询用户档案（部分命中合法）"""
        if not user_ids:
            return []
        ids = sorted(user_ids)
        placeholders = ", ".join("?" for _ in ids)
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM profiles WHERE user_id IN ({placeholders})",
            ids,
        )
        rows = await cursor.fetchall()
        return [self._row_to_profile(row) for row in rows]

    async def list_admin_ids(self) -> set[str]:
        """全部管理员 user_id"""
        cursor = await self._conn.execute("SELECT user_id FROM profiles WHERE is_admin = 1")
        rows = await cursor.fetchall()
        return {row[0] for row in rows}

    @staticmethod
    def _row_to_profile(row: aiosqlite.Row) -> UserProfile:
        return UserProfile(
            user_id=row[0],
            display_name=row[1],
            email=row[2] or "",
            is_admin=bool(row[3]),
            avatar_url=row[4],
        )
