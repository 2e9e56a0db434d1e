from fastapi import APIRouter, Depends, HTTPException, Query

from safari_ops.auth import get_current_user
from safari_ops.exceptions import NotFoundError
from safari_ops.models import User
from safari_ops.schemas import NotificationOut
from safari_ops.services.notification_service import NotificationService
from safari_ops.store import DataStore, get_store

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def get_notification_service(store: DataStore = Depends(get_store)) -> NotificationService:
    return NotificationService(store)


@router.get("", response_model=list[NotificationOut])
def list_notifications(
    include_dismissed: bool = False,
    limit: int = Query(50, ge=1, le=200),
    service: NotificationService = Depends(get_notification_service),
    user: User = Depends(get_current_user),
):
    return service.list_for_user(user.id, include_dismissed=include_dismissed, limit=limit)


@router.post("/read-all")
def mark_all_read(
    service: NotificationService = Depends(get_notification_service),
    user: User = Depends(get_current_user),
):
    return {"marked_read": service.mark_all_read(user.id)}


@router.post("/{notification_id}/read", response_model=NotificationOut)
def mark_read(
    notification_id: str,
    service: NotificationService = Depends(get_notification_service),
    user: User = Depends(get_current_user),
):
    try:
        return service.mark_read(notification_id, user.id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{notification_id}/dismiss", response_model=NotificationOut)
def dismiss(
    notification_id: str,
    service: NotificationService = Depends(get_notification_service),
    user: User = Depends(get_current_user),
):
    try:
        return service.dismiss(notification_id, user.id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
