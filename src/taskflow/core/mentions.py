"""评论 @ 提及解析

优先识别稳定 id 记号 `@[user_id:Display Name]`；
可选地再按显示名匹配 `@display name` / `@displayname`，
但重名的参与者不参与显示名匹配，避免歧义。
只有任务参与者会被识别为提及对象。
"""

import re
from collections import Counter
from collections.abc import Mapping

MENTION_TOKEN_RE = re.compile(r"@\[(?P<user_id>[^:\]\s]+):(?P<name>[^\]]*)\]")


def format_mention(user_id: str, display_name: str) -> str:
    """生成稳定提及记号"""
    safe_name = display_name.replace("]", "").strip()
    return f"@[{user_id}:{safe_name}]"


def _name_tokens(display_name: str) -> set[str]:
    name = display_name.strip().lower()
    if not name:
        return set()
    return {"@" + name, "@" + name.replace(" ", "")}


def extract_mentions(
    body: str,
    participants: Mapping[str, str],
    by_display_name: bool = True,
) -> set[str]:
    """提取评论中被提及的参与者

    Args:
        body: 评论正文
        participants: 参与者 user_id -> 显示名
        by_display_name: 是否启用显示名匹配

    Returns:
        被提及的参与者 user_id 集合
    """
    mentioned = {
        m.group("user_id")
        for m in MENTION_TOKEN_RE.finditer(body)
        if m.group("user_id") in participants
    }
    if not by_display_name:
        return mentioned

    # id 记号已经处理过，从文本中移除后再做显示名匹配
    plain = MENTION_TOKEN_RE.sub(" ", body).lower()
    name_counts = Counter(n.strip().lower() for n in participants.values() if n.strip())
    for user_id, display_name in participants.items():
        if user_id in mentioned or name_counts[display_name.strip().lower()] != 1:
            continue
        for token in _name_tokens(display_name):
            if re.search(r"(?<!\w)" + re.escape(token) + r"(?!\w)", plain):
                mentioned.add(user_id)
                break
    return mentioned
