"""Actor / UserProfile 数据模型

Actor 由外部身份提供方生成并显式传入每次引擎调用，
引擎只做授权判断，不做认证。
"""

from pydantic import BaseModel, ConfigDict, Field


class Actor(BaseModel):
    """已认证的操作者 + 能力集合"""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(description="稳定的用户 ID")
    display_name: str = Field(description="显示名称")
    email: str = Field(default="", description="邮箱，可为空")
    is_admin: bool = Field(default=False, description="是否具备管理员能力")
    avatar_url: str | None = Field(default=None, description="头像 URL")


class UserProfile(BaseModel):
    """用户档案 -- 通知收件人解析结果"""

    user_id: str
    display_name: str
    email: str = Field(default="", description="空字符串表示没有可用邮箱")
    is_admin: bool = False
    avatar_url: str | None = None

    def to_actor(self) -> Actor:
        return Actor(
            user_id=self.user_id,
            display_name=self.display_name,
            email=self.email,
            is_admin=self.is_admin,
            avatar_url=self.avatar_url,
        )
