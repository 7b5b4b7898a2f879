# api/recipes.py
# Handles all API endpoints related to recipes.

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

# Import local modules
from app import crud
from app import media
from app import models
from app import schemas
from app.api.deps import get_current_user_id
from app.core.errors import Forbidden, NotFound, ValidationError
from app.db.session import get_db
from app.realtime import NEW_NOTIFICATION, RECIPE_UPDATED, EventChannel

# Get a logger instance
logger = logging.getLogger(__name__)

# membership model, verb used in the owner's notification
TOGGLES = {
    "like": (models.RecipeLike, "liked"),
    "reshare": (models.RecipeReshare, "reshared"),
}


def resolve_recipe_image(image: Optional[UploadFile], external_url: Optional[str]) -> str:
    source = media.choose_media_source({"image": image}, external_url)
    if isinstance(source, media.ExternalUrl):
        # Recipe links are not classified; any http(s) link is the picture
        return media.require_http_url(source.url)
    stored = media.ingest(source)
    if stored is None:
        return ""
    if stored.kind is not media.MediaKind.IMAGE:
        raise ValidationError("Recipe media must be an image")
    return stored.url


def build_router(events: EventChannel) -> APIRouter:
    """
    Recipe endpoints, publishing their changes on ``events``.
    """
    router = APIRouter()

    @router.get("", response_model=List[schemas.Recipe])
    def read_recipes(db: Session = Depends(get_db)):
        """
        Retrieve all recipes, newest first, with their owner resolved.
        """
        logger.debug("Fetching all recipes.")
        return crud.get_recipes(db)

    @router.get("/user", response_model=List[schemas.Recipe])
    def read_my_recipes(db: Session = Depends(get_db), user_id: UUID = Depends(get_current_user_id)):
        """
        Retrieve the recipes posted by the caller.
        """
        return crud.get_recipes(db, owner_id=user_id)

    @router.post("", response_model=schemas.Recipe, status_code=status.HTTP_201_CREATED)
    def create_recipe(
        title: str = Form(..., min_length=1),
        prep_time: str = Form(..., alias="prepTime", min_length=1),
        image: Optional[UploadFile] = File(None),
        external_url: Optional[str] = Form(None, alias="externalURL"),
        db: Session = Depends(get_db),
        user_id: UUID = Depends(get_current_user_id),
    ):
        """
        Create a recipe owned by the caller and recompute the caller's rank.
        """
        logger.debug(f"User {user_id} is creating a new recipe.")
        image_url = resolve_recipe_image(image, external_url)
        return crud.create_user_recipe(
            db, title=title, prep_time=prep_time, image=image_url, user_id=user_id
        )

    @router.delete("/{recipe_id}", response_model=schemas.Message)
    def delete_recipe(
        recipe_id: UUID,
        db: Session = Depends(get_db),
        user_id: UUID = Depends(get_current_user_id),
    ):
        """
        Delete a recipe. Only the owner of the recipe can perform this action.
        """
        logger.debug(f"User {user_id} is deleting recipe with ID: {recipe_id}")
        db_recipe = crud.get_recipe(db, recipe_id=recipe_id)
        if db_recipe is None:
            logger.warning(f"Recipe with ID: {recipe_id} not found for deletion.")
            raise NotFound("Recipe")
        if db_recipe.created_by_id != user_id:
            logger.warning(f"User {user_id} is not authorized to delete recipe with ID: {recipe_id}")
            raise Forbidden()

        crud.delete_recipe(db, db_recipe)
        return {"message": "Recipe deleted"}

    def toggle(action: str, recipe_id: UUID, db: Session, user_id: UUID) -> schemas.Recipe:
        model, verb = TOGGLES[action]
        db_recipe = crud.get_recipe(db, recipe_id=recipe_id)
        if db_recipe is None:
            raise NotFound("Recipe")
        actor = crud.get_user(db, user_id)
        if actor is None:
            raise NotFound("User")

        owner_id = db_recipe.created_by_id
        title = db_recipe.title
        added = crud.toggle_recipe_membership(db, model, recipe_id, user_id)
        logger.debug(f"User {user_id} {action} on recipe {recipe_id}: {'added' if added else 'removed'}")

        if added and owner_id != user_id:
            notification = crud.create_notification(
                db, owner_id, f'{actor.name} {verb} your recipe: "{title}"'
            )
            events.emit(NEW_NOTIFICATION, schemas.Notification.model_validate(notification), room=owner_id)

        recipe = schemas.Recipe.model_validate(crud.get_recipe(db, recipe_id=recipe_id))
        events.emit(RECIPE_UPDATED, recipe)
        return recipe

    @router.post("/{recipe_id}/like", response_model=schemas.Recipe)
    def like_recipe(recipe_id: UUID, db: Session = Depends(get_db), user_id: UUID = Depends(get_current_user_id)):
        """
        Toggle the caller's like on a recipe.
        """
        return toggle("like", recipe_id, db, user_id)

    @router.post("/{recipe_id}/reshare", response_model=schemas.Recipe)
    def reshare_recipe(recipe_id: UUID, db: Session = Depends(get_db), user_id: UUID = Depends(get_current_user_id)):
        """
        Toggle the caller's reshare of a recipe.
        """
        return toggle("reshare", recipe_id, db, user_id)

    return router
