from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import List, Optional


class ContactBase(BaseModel):
    """Shared fields for contact payloads.

    Required strings are trimmed and must not be empty afterwards.
    """

    name: str = Field(min_length=1, max_length=255)
    phone: str = Field(min_length=1, max_length=50)
    email: EmailStr
    company: Optional[str] = Field(None, max_length=255)
    tags: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = None
    is_favorite: Optional[bool] = None

    class Config:
        str_strip_whitespace = True


class ContactCreate(ContactBase):
    """Schema for creating new contact."""

    pass


class ContactUpdate(ContactBase):
    """Schema for replacing every mutable field of a contact."""

    pass


class ContactOut(BaseModel):
    """Schema for returning a stored contact."""

    id: int
    name: str
    phone: str
    email: str
    company: Optional[str] = None
    tags: Optional[str] = None
    notes: Optional[str] = None
    is_favorite: bool = False
    created_at: datetime

    class Config:
        from_attributes = True  # allow SQLAlchemy objects


class PaginationOut(BaseModel):
    """Paging metadata returned with a contact listing."""

    page: int
    limit: int
    total: int
    totalPages: int


class ContactResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    contact: ContactOut


class ContactListResponse(BaseModel):
    success: bool = True
    contacts: List[ContactOut]
    pagination: PaginationOut


class FavoriteResponse(BaseModel):
    success: bool = True
    message: str
    is_favorite: bool


class TagsResponse(BaseModel):
    success: bool = True
    tags: List[str]


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class UserBase(BaseModel):
    """Shared fields for user schemas."""

    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        """Emails identify users case-insensitively."""
        return value.strip().lower()


class UserCreate(UserBase):
    """Payload for registering a new user."""

    password: str = Field(min_length=8)


class UserLogin(UserBase):
    """Payload for logging in."""

    password: str = Field(min_length=1)


class UserOut(BaseModel):
    """Public user fields returned with a token."""

    id: int
    email: str

    class Config:
        from_attributes = True


class UserProfile(UserOut):
    """User fields returned by the profile endpoint."""

    created_at: datetime


class AuthResponse(BaseModel):
    """Response for successful registration or login."""

    success: bool = True
    message: str
    token: str
    user: UserOut


class ProfileResponse(BaseModel):
    success: bool = True
    user: UserProfile


class TokenData(BaseModel):
    """Payload stored inside JWT token."""

    sub: str | None = None
    exp: Optional[datetime] = None
