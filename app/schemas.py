# schemas.py
# Defines the Pydantic models (schemas) for data validation and serialization.

from pydantic import AliasChoices, BaseModel, EmailStr, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import List, Optional
from uuid import UUID
from datetime import datetime


class CamelModel(BaseModel):
    """
    JSON uses camelCase field names; snake_case is accepted on input too.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# --- User Schemas ---

class UserRef(CamelModel):
    """Resolved reference to a user: just enough to render a name."""
    id: UUID
    name: str


class UserCreate(CamelModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1)
    avatar: str = ""


class UserLogin(CamelModel):
    email: EmailStr
    password: str


class UserUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    avatar: Optional[str] = None


class User(CamelModel):
    """A user profile. Never carries the password hash."""
    id: UUID
    name: str
    email: EmailStr
    avatar: str
    posted_recipes: int
    liked_recipes: int
    rank: str
    created_at: Optional[datetime] = None


class Token(CamelModel):
    token: str
    user_id: UUID


# --- Recipe Schemas ---

class Recipe(CamelModel):
    id: UUID
    title: str
    image: str
    prep_time: str
    likes: List[UUID] = []
    reshares: List[UUID] = []
    # ORM rows expose the owner as `owner`
    created_by: UserRef = Field(..., validation_alias=AliasChoices("owner", "createdBy", "created_by"))
    created_at: Optional[datetime] = None

    @field_validator("likes", "reshares", mode="before")
    @classmethod
    def membership_user_ids(cls, value):
        # ORM rows come in as RecipeLike/RecipeReshare objects
        return [getattr(item, "user_id", item) for item in value]


# --- Post Schemas ---

class CommentCreate(CamelModel):
    text: str = Field(..., min_length=1)


class Comment(CamelModel):
    id: int
    user: UserRef
    text: str
    created_at: Optional[datetime] = None


class Post(CamelModel):
    id: UUID
    user: UserRef
    content: str
    image: str
    video: str
    upvotes: int
    downvotes: int
    comments: List[Comment] = []
    created_at: Optional[datetime] = None


class PostDeleted(CamelModel):
    id: UUID


# --- Notification Schemas ---

class NotificationCreate(CamelModel):
    message: Optional[str] = None
    user_id: UUID
    commenter_id: UUID


class Notification(CamelModel):
    id: UUID
    user: UserRef
    message: str
    created_at: Optional[datetime] = None


class Message(BaseModel):
    message: str
