# models.py
# Defines the SQLAlchemy ORM models for the database tables.

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.types import Uuid

from app.core.ranks import DEFAULT_RANK
from app.db.session import Base


def utcnow():
    return datetime.now(timezone.utc)


class User(Base):
    """
    User model for the 'users' table.
    """
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    avatar = Column(String, nullable=False, default="")

    posted_recipes = Column(Integer, nullable=False, default=0)
    liked_recipes = Column(Integer, nullable=False, default=0)
    rank = Column(String, nullable=False, default=DEFAULT_RANK)

    created_at = Column(DateTime, default=utcnow)

    recipes = relationship("Recipe", back_populates="owner")

    def __str__(self):
        return f"{self.id}: {self.name} <{self.email}>"


class Recipe(Base):
    """
    Recipe model for the 'recipes' table.
    """
    __tablename__ = "recipes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    title = Column(String, nullable=False)
    image = Column(String, nullable=False, default="")
    prep_time = Column(String, nullable=False)
    created_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, index=True)

    owner = relationship("User", back_populates="recipes")

    likes = relationship("RecipeLike", cascade="all, delete-orphan")
    reshares = relationship("RecipeReshare", cascade="all, delete-orphan")

    def __str__(self):
        return f"{self.id}: {self.title}"


class RecipeLike(Base):
    """
    Membership of a user in a recipe's like-set. The composite key keeps each
    user in the set at most once.
    """
    __tablename__ = "recipe_likes"

    recipe_id = Column(Uuid(as_uuid=True), ForeignKey("recipes.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), primary_key=True, index=True)
    created_at = Column(DateTime, default=utcnow)


class RecipeReshare(Base):
    """
    Membership of a user in a recipe's reshare-set.
    """
    __tablename__ = "recipe_reshares"

    recipe_id = Column(Uuid(as_uuid=True), ForeignKey("recipes.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), primary_key=True, index=True)
    created_at = Column(DateTime, default=utcnow)


class Post(Base):
    """
    Community post with its embedded, ordered comments.
    """
    __tablename__ = "posts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    image = Column(String, nullable=False, default="")
    video = Column(String, nullable=False, default="")
    upvotes = Column(Integer, nullable=False, default=0)
    downvotes = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, index=True)

    user = relationship("User")
    # Comment ids are monotonic, so ordering by id is append order.
    comments = relationship(
        "Comment",
        back_populates="post",
        order_by="Comment.id",
        cascade="all, delete-orphan",
    )


class Comment(Base):
    """
    A comment owned by exactly one post.
    """
    __tablename__ = "post_comments"
    # Never reuse ids of deleted comments.
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Uuid(as_uuid=True), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    post = relationship("Post", back_populates="comments")
    user = relationship("User")


class Notification(Base):
    """
    A message addressed to one user.
    """
    __tablename__ = "notifications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, index=True)

    user = relationship("User")
