# api/posts.py
# Handles community posts, votes and comments.

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

# Import local modules
from app import crud
from app import media
from app import schemas
from app.api.deps import get_current_user_id
from app.core.errors import Forbidden, NotFound
from app.db.session import get_db
from app.realtime import NEW_NOTIFICATION, NEW_POST, POST_DELETED, POST_UPDATED, EventChannel

# Get a logger instance
logger = logging.getLogger(__name__)


def build_router(events: EventChannel) -> APIRouter:
    """
    Post endpoints, publishing their changes on ``events``.
    """
    router = APIRouter()

    def load_post(db: Session, post_id: UUID):
        db_post = crud.get_post(db, post_id=post_id)
        if db_post is None:
            logger.warning(f"Post with ID {post_id} not found.")
            raise NotFound("Post")
        return db_post

    def publish_update(db: Session, post_id: UUID) -> schemas.Post:
        post = schemas.Post.model_validate(crud.get_post(db, post_id=post_id))
        events.emit(POST_UPDATED, post)
        return post

    @router.get("", response_model=List[schemas.Post])
    def read_posts(db: Session = Depends(get_db)):
        """
        All posts, newest first, with owners and comment authors resolved.
        """
        return crud.get_posts(db)

    @router.post("", response_model=schemas.Post, status_code=status.HTTP_201_CREATED)
    def create_post(
        content: str = Form(..., min_length=1),
        image: Optional[UploadFile] = File(None),
        video: Optional[UploadFile] = File(None),
        external_url: Optional[str] = Form(None, alias="externalURL"),
        media_url: Optional[str] = Form(None, alias="mediaUrl"),
        db: Session = Depends(get_db),
        user_id: UUID = Depends(get_current_user_id),
    ):
        """
        Create a post with at most one image or video, uploaded or linked.
        """
        source = media.choose_media_source({"image": image, "video": video}, external_url or media_url)
        stored = media.ingest(source)

        fields = {}
        if stored is not None:
            fields[stored.kind.value] = stored.url

        post = schemas.Post.model_validate(crud.create_post(db, user_id=user_id, content=content, **fields))
        logger.debug(f"User {user_id} created post {post.id}")
        events.emit(NEW_POST, post)
        return post

    @router.post("/{post_id}/upvote", response_model=schemas.Post)
    def upvote_post(post_id: UUID, db: Session = Depends(get_db), user_id: UUID = Depends(get_current_user_id)):
        load_post(db, post_id)
        crud.vote_post(db, post_id, upvote=True)
        return publish_update(db, post_id)

    @router.post("/{post_id}/downvote", response_model=schemas.Post)
    def downvote_post(post_id: UUID, db: Session = Depends(get_db), user_id: UUID = Depends(get_current_user_id)):
        load_post(db, post_id)
        crud.vote_post(db, post_id, upvote=False)
        return publish_update(db, post_id)

    @router.post("/{post_id}/comment", response_model=schemas.Post)
    def comment_on_post(
        post_id: UUID,
        comment: schemas.CommentCreate,
        db: Session = Depends(get_db),
        user_id: UUID = Depends(get_current_user_id),
    ):
        """
        Append a comment; the post owner is notified unless they wrote it.
        """
        db_post = load_post(db, post_id)
        commenter = crud.get_user(db, user_id)
        if commenter is None:
            raise NotFound("User")
        owner_id = db_post.user_id

        crud.add_comment(db, post_id=post_id, user_id=user_id, text=comment.text)
        post = publish_update(db, post_id)

        if owner_id != user_id:
            notification = crud.create_notification(
                db, owner_id, f'{commenter.name} commented on your post: "{comment.text}"'
            )
            events.emit(NEW_NOTIFICATION, schemas.Notification.model_validate(notification), room=owner_id)

        return post

    @router.delete("/{post_id}", response_model=schemas.Message)
    def delete_post(post_id: UUID, db: Session = Depends(get_db), user_id: UUID = Depends(get_current_user_id)):
        """
        Delete a post and its comments. Only the owner of the post can do this.
        """
        db_post = load_post(db, post_id)
        if db_post.user_id != user_id:
            logger.warning(f"User {user_id} is not authorized to delete post {post_id}")
            raise Forbidden()

        crud.delete_post(db, db_post)
        events.emit(POST_DELETED, schemas.PostDeleted(id=post_id))
        return {"message": "Post deleted"}

    @router.delete("/{post_id}/comment/{comment_id}", response_model=schemas.Post)
    def delete_comment(
        post_id: UUID,
        comment_id: int,
        db: Session = Depends(get_db),
        user_id: UUID = Depends(get_current_user_id),
    ):
        """
        Delete a comment. Only its author can do this.
        """
        load_post(db, post_id)
        db_comment = crud.get_comment(db, post_id=post_id, comment_id=comment_id)
        if db_comment is None:
            raise NotFound("Comment")
        if db_comment.user_id != user_id:
            logger.warning(f"User {user_id} is not authorized to delete comment {comment_id}")
            raise Forbidden()

        crud.delete_comment(db, db_comment)
        return publish_update(db, post_id)

    return router
