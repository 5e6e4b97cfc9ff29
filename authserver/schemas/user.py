"""User schemas"""

from pydantic import BaseModel, ConfigDict, Field


class UserCreate(BaseModel):
    """Schema for creating a user"""

    username: str = Field(..., min_length=1, max_length=40)
    password: str = Field(..., min_length=8, max_length=64)
    name: str = Field("", max_length=64)
    role: list[str] = Field(default_factory=list)
    login_disabled: bool = False


class UserSummary(BaseModel):
    """User as shown in introspection and consent documents"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    name: str
