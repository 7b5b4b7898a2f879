# crud.py
# Contains the functions for Create, Read, Update, Delete (CRUD) operations.

import logging
from uuid import UUID

from sqlalchemy import case, delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from app import models
from app import schemas
from app.core.config import settings
from app.core.errors import ValidationError
from app.core.ranks import rank_expression
from app.core.security import get_password_hash

# Get a logger instance
logger = logging.getLogger(__name__)


def _floored_decrement(column):
    return case((column > 0, column - 1), else_=0)


# --- User CRUD Functions ---

def get_user(db: Session, user_id: UUID):
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(models.User.email == email).first()


def create_user(db: Session, user: schemas.UserCreate):
    db_user = models.User(
        name=user.name,
        email=user.email,
        hashed_password=get_password_hash(user.password),
        avatar=user.avatar or "",
    )
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with another registration for the same email
        db.rollback()
        raise ValidationError("User already exists")
    db.refresh(db_user)
    return db_user


def update_user(db: Session, user_id: UUID, user_update: schemas.UserUpdate):
    db_user = get_user(db, user_id)
    if not db_user:
        return None

    update_data = user_update.model_dump(exclude_unset=True, exclude_none=True)
    for key, value in update_data.items():
        setattr(db_user, key, value)

    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError("Email already in use")
    db.refresh(db_user)
    return db_user


def adjust_posted_recipes(db: Session, user_id: UUID, delta: int):
    """
    Atomically move a user's posted-recipe counter by +1/-1 (never below zero)
    and recompute the rank from the new value in the same statement.
    """
    column = models.User.posted_recipes
    new_count = column + 1 if delta > 0 else _floored_decrement(column)
    db.execute(
        update(models.User)
        .where(models.User.id == user_id)
        .values(posted_recipes=new_count, rank=rank_expression(new_count))
    )


def adjust_liked_recipes(db: Session, user_id: UUID, delta: int):
    column = models.User.liked_recipes
    new_count = column + 1 if delta > 0 else _floored_decrement(column)
    db.execute(
        update(models.User)
        .where(models.User.id == user_id)
        .values(liked_recipes=new_count)
    )


# --- Recipe CRUD Functions ---

def _recipe_query(db: Session):
    return db.query(models.Recipe).options(
        joinedload(models.Recipe.owner),
        selectinload(models.Recipe.likes),
        selectinload(models.Recipe.reshares),
    )


def get_recipe(db: Session, recipe_id: UUID):
    """
    Retrieve a single recipe with its owner and like/reshare sets resolved.
    """
    logger.debug(f"Retrieving recipe with id {recipe_id}")
    return _recipe_query(db).filter(models.Recipe.id == recipe_id).first()


def get_recipes(db: Session, owner_id: UUID | None = None):
    query = _recipe_query(db)
    if owner_id is not None:
        query = query.filter(models.Recipe.created_by_id == owner_id)
    return query.order_by(models.Recipe.created_at.desc()).all()


def create_user_recipe(db: Session, title: str, prep_time: str, image: str, user_id: UUID):
    """
    Create a recipe and bump its owner's posted-recipe counter and rank.
    """
    db_recipe = models.Recipe(
        title=title,
        prep_time=prep_time,
        image=image,
        created_by_id=user_id,
    )
    db.add(db_recipe)
    db.flush()
    adjust_posted_recipes(db, user_id, +1)
    db.commit()
    return get_recipe(db, db_recipe.id)


def delete_recipe(db: Session, db_recipe: models.Recipe):
    """
    Delete a recipe (its like/reshare rows cascade) and decrement the owner's
    counter and every liker's liked-recipe counter.
    """
    owner_id = db_recipe.created_by_id
    likers = select(models.RecipeLike.user_id).where(models.RecipeLike.recipe_id == db_recipe.id)
    db.execute(
        update(models.User)
        .where(models.User.id.in_(likers))
        .values(liked_recipes=_floored_decrement(models.User.liked_recipes))
    )
    db.delete(db_recipe)
    db.flush()
    adjust_posted_recipes(db, owner_id, -1)
    db.commit()


def toggle_recipe_membership(db: Session, model, recipe_id: UUID, user_id: UUID) -> bool:
    """
    Toggle ``user_id`` in a recipe's like or reshare set (``model`` is
    RecipeLike or RecipeReshare).

    Returns True when the user was added, False when removed. The delete and
    the insert are each conditional on the composite key, so concurrent
    toggles cannot leave a user in the set twice.
    """
    removed = db.execute(
        delete(model).where(model.recipe_id == recipe_id, model.user_id == user_id)
    ).rowcount
    if removed:
        if model is models.RecipeLike:
            adjust_liked_recipes(db, user_id, -1)
        db.commit()
        return False

    db.add(model(recipe_id=recipe_id, user_id=user_id))
    try:
        db.flush()
    except IntegrityError:
        # Someone else added the same membership first.
        db.rollback()
        logger.warning(f"Concurrent toggle on recipe {recipe_id} by {user_id}")
        return False
    if model is models.RecipeLike:
        adjust_liked_recipes(db, user_id, +1)
    db.commit()
    return True


# --- Post CRUD Functions ---

def _post_query(db: Session):
    return db.query(models.Post).options(
        joinedload(models.Post.user),
        selectinload(models.Post.comments).joinedload(models.Comment.user),
    )


def get_post(db: Session, post_id: UUID):
    """
    Retrieve a post with its owner and comment authors resolved.
    """
    logger.debug(f"Retrieving post with id {post_id}")
    return _post_query(db).filter(models.Post.id == post_id).first()


def get_posts(db: Session):
    return _post_query(db).order_by(models.Post.created_at.desc()).all()


def create_post(db: Session, user_id: UUID, content: str, image: str = "", video: str = ""):
    db_post = models.Post(user_id=user_id, content=content, image=image, video=video)
    db.add(db_post)
    db.commit()
    return get_post(db, db_post.id)


def vote_post(db: Session, post_id: UUID, upvote: bool):
    column = models.Post.upvotes if upvote else models.Post.downvotes
    db.execute(
        update(models.Post)
        .where(models.Post.id == post_id)
        .values({column: column + 1})
    )
    db.commit()


def delete_post(db: Session, db_post: models.Post):
    db.delete(db_post)
    db.commit()


def add_comment(db: Session, post_id: UUID, user_id: UUID, text: str):
    db_comment = models.Comment(post_id=post_id, user_id=user_id, text=text)
    db.add(db_comment)
    db.commit()
    db.refresh(db_comment)
    return db_comment


def get_comment(db: Session, post_id: UUID, comment_id: int):
    return (
        db.query(models.Comment)
        .filter(models.Comment.id == comment_id, models.Comment.post_id == post_id)
        .first()
    )


def delete_comment(db: Session, db_comment: models.Comment):
    db.delete(db_comment)
    db.commit()


# --- Notification CRUD Functions ---

def create_notification(db: Session, recipient_id: UUID, message: str):
    db_notification = models.Notification(user_id=recipient_id, message=message)
    db.add(db_notification)
    db.commit()
    return get_notification(db, db_notification.id)


def get_notification(db: Session, notification_id: UUID):
    return (
        db.query(models.Notification)
        .options(joinedload(models.Notification.user))
        .filter(models.Notification.id == notification_id)
        .first()
    )


def get_notifications(db: Session, user_id: UUID, limit: int | None = None):
    """
    Latest notifications addressed to ``user_id``, newest first.
    """
    if limit is None:
        limit = settings.NOTIFICATION_FEED_LIMIT
    return (
        db.query(models.Notification)
        .options(joinedload(models.Notification.user))
        .filter(models.Notification.user_id == user_id)
        .order_by(models.Notification.created_at.desc())
        .limit(limit)
        .all()
    )
