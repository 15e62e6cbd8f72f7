from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel

import dates
from models import Priority


class CamelModel(BaseModel):
    # JSON uses camelCase; python code may use either name
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Auth
class RegisterRequest(CamelModel):
    username: str = Field(min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6, max_length=100)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)


class LoginRequest(CamelModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class UpdateUserRequest(CamelModel):
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    current_password: Optional[str] = Field(default=None, min_length=6, max_length=100)
    new_password: Optional[str] = Field(default=None, min_length=6, max_length=100)


class AuthResponse(CamelModel):
    token: str
    type: str = "Bearer"
    id: int
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str


class UserResponse(CamelModel):
    id: int
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("role", mode="before")
    @classmethod
    def _role_name(cls, value):
        return getattr(value, "value", value)

    @field_serializer("created_at", "updated_at")
    def _iso(self, value: Optional[datetime]):
        return dates.format_datetime(value)


# Todos
class _TodoInput(CamelModel):
    @field_validator("due_date", mode="before", check_fields=False)
    @classmethod
    def _parse_due_date(cls, value):
        return dates.parse_datetime(value)

    @field_validator("priority", mode="before", check_fields=False)
    @classmethod
    def _upper_priority(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value


class TodoCreateRequest(_TodoInput):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    completed: Optional[bool] = False
    priority: Optional[Priority] = Priority.MEDIUM
    due_date: Optional[datetime] = None


class TodoUpdateRequest(_TodoInput):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    completed: Optional[bool] = None
    priority: Optional[Priority] = None
    due_date: Optional[datetime] = None


class TodoResponse(CamelModel):
    id: int
    title: str
    description: Optional[str] = None
    completed: bool
    priority: Priority
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    due_date: Optional[datetime] = None

    @field_serializer("created_at", "updated_at", "due_date")
    def _iso(self, value: Optional[datetime]):
        return dates.format_datetime(value)


class TodoStats(CamelModel):
    total: int
    completed: int
    pending: int
    high_priority: int
    medium_priority: int
    low_priority: int


class MessageResponse(BaseModel):
    message: str
