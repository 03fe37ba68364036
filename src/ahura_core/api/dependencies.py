"""Request-scoped dependencies shared by the routers."""
import logging
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from .. import crud, models
from ..database import get_db

logger = logging.getLogger("ahura-core.api.dependencies")


def get_current_actor(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
    db: Session = Depends(get_db),
) -> models.User:
    """
    Resolve the authenticated user from the identity provider's headers.

    The gateway in front of this service validates the session and forwards
    the user id (and optionally the global role). Both are trusted as-is.

    Raises:
        HTTPException: 401 if the headers are missing or name no active user
    """
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    user = crud.get_user(db, user_id)
    if not user or not user.is_active:
        logger.warning(f"Rejected request for unknown or inactive user {x_user_id}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    if x_user_role:
        try:
            role = models.GlobalRole(x_user_role)
        except ValueError:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
        if role != user.global_role:
            # Request-scoped copy: the provider's role wins without touching the stored row
            db.expunge(user)
            user.global_role = role

    return user
