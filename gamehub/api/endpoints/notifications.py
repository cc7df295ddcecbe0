from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gamehub.services import notification_service
from gamehub.models import user as user_model
from gamehub.schemas import notification_schemas
from gamehub.api.dependencies import get_current_user, get_db

router = APIRouter()

@router.get("/", response_model=List[notification_schemas.NotificationRead])
async def get_user_notifications_endpoint(
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(get_current_user),
    skip: int = 0,
    limit: int = 100,
):
    return notification_service.get_user_notifications(db=db, user_id=current_user.id, skip=skip, limit=limit)

@router.patch("/{notification_id}/read", response_model=notification_schemas.NotificationRead)
async def mark_notification_as_read_endpoint(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(get_current_user),
):
    return notification_service.mark_notification_as_read(
        db=db, notification_id=notification_id, current_user_id=current_user.id
    )

@router.post("/read-all", response_model=notification_schemas.MarkAllReadResponse)
async def mark_all_user_notifications_as_read_endpoint(
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(get_current_user),
):
    updated = notification_service.mark_all_user_notifications_as_read(db=db, current_user_id=current_user.id)
    return {"updated": updated}
