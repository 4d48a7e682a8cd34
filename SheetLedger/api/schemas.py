"""
Pydantic schemas for request bodies.

Field names are snake_case in Python and camelCase on the wire.
"""
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema accepting camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EmailRequest(CamelModel):
    """Schema for requests identifying a user only."""
    email: str = Field(min_length=1)


class RegisterRequest(EmailRequest):
    """Schema for user registration."""
    uid: Optional[str] = None
    name: str = ''
    picture: str = ''


class SetupRequest(EmailRequest):
    """Schema for the welcome setup."""
    nickname: str = ''
    purpose: str = ''
    monthly_budget: Any = ''
    categories: List[str] = []


class ProfileUpdateRequest(EmailRequest):
    """Schema for profile updates. Only the given fields are changed."""
    name: Optional[str] = None
    nickname: Optional[str] = None
    purpose: Optional[str] = None
    monthly_budget: Any = None
    categories: Optional[List[str]] = None
    is_setup_complete: Optional[bool] = None
    picture: Optional[str] = None

    def updates(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude={'email'})


class ExpenseRequest(CamelModel):
    """Schema for saving an expense."""
    user_email: str = Field(min_length=1)
    user_name: Optional[str] = None
    toko: Optional[str] = None
    kategori: Optional[str] = None
    total: Any = None
    tanggal: Optional[str] = None
    alamat: str = ''
    catatan: str = ''
    filename: Optional[str] = None
    photo_data: Optional[str] = None

    def fields(self) -> dict:
        return self.model_dump(exclude={'user_email', 'user_name'})
