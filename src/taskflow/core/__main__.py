"""CLI 入口模块 -- python -m taskflow.core <command>

支持的命令：
  init-db                                     初始化数据库表结构
  add-user <user_id> <name> [email] [--admin] 新增或更新用户档案
"""

import asyncio
import sys

from .config import get_db_path
from .models import UserProfile

_USAGE = """用法: python -m taskflow.core <command>
命令:
  init-db                                     初始化数据库表结构
  add-user <user_id> <name> [email] [--admin] 新增或更新用户档案"""


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print(_USAGE)
        sys.exit(1)

    command = sys.argv[1]

    if command == "init-db":
        asyncio.run(init_database())
    elif command == "add-user":
        args = [a for a in sys.argv[2:] if a != "--admin"]
        if len(args) < 2:
            print(_USAGE)
            sys.exit(1)
        profile = UserProfile(
            user_id=args[0],
            display_name=args[1],
            email=args[2] if len(args) > 2 else "",
            is_admin="--admin" in sys.argv[2:],
        )
        asyncio.run(add_user(profile))
    else:
        print(f"未知命令: {command}")
        print("可用命令: init-db, add-user")
        sys.exit(1)


async def init_database() -> None:
    """创建数据库并初始化表结构"""
    from .store import create_store_group, verify_wal_mode

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")
    store_group = await create_store_group(db_path)
    try:
        wal = await verify_wal_mode(store_group.conn)
        print(f"初始化完成，WAL 模式: {'已启用' if wal else '未启用'}")
    finally:
        await store_group.conn.close()


async def add_user(profile: UserProfile) -> None:
    """写入用户档案（已存在则更新）"""
    from .store import create_store_group

    store_group = await create_store_group(get_db_path())
    try:
        await store_group.user_store.upsert_user(profile)
        role = "管理员" if profile.is_admin else "成员"
        print(f"已保存用户 {profile.user_id} ({profile.display_name}, {role})")
    finally:
        await store_group.conn.close()


if __name__ == "__main__":
    main()
