"""Current user endpoints."""
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ...database import get_db
from ..dependencies import get_current_actor

router = APIRouter(tags=["users"])


@router.get("/me", response_model=schemas.UserResponse)
def get_me(actor: models.User = Depends(get_current_actor)):
    """Get the authenticated user."""
    return actor


@router.get("/me/notifications", response_model=List[schemas.NotificationResponse])
def list_my_notifications(
    unread_only: bool = Query(False, description="Only return unread notifications"),
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """List notifications for the authenticated user, newest first."""
    return crud.get_user_notifications(db, actor.id, unread_only=unread_only)
