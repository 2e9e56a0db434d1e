from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from safari_ops.auth import require_permission
from safari_ops.database import get_db
from safari_ops.exceptions import NoCheckInFound, NotFoundError
from safari_ops.models import User
from safari_ops.schemas import (
    AttendanceOut, AttendanceStats, AttendanceUpsert, CheckInRequest, CheckOutRequest, MarkAbsentRequest,
)
from safari_ops.services.attendance_service import AttendanceService
from safari_ops.services.audit_service import log_action
from safari_ops.store import DataStore, get_store

router = APIRouter(prefix="/api/attendance", tags=["attendance"])


def get_attendance_service(store: DataStore = Depends(get_store)) -> AttendanceService:
    return AttendanceService(store)


@router.post("/check-in", response_model=AttendanceOut)
def check_in(
    data: CheckInRequest,
    service: AttendanceService = Depends(get_attendance_service),
    user: User = Depends(require_permission("attendance")),
):
    return service.check_in(user.id, data.location)


@router.post("/check-out", response_model=AttendanceOut)
def check_out(
    data: CheckOutRequest,
    service: AttendanceService = Depends(get_attendance_service),
    user: User = Depends(require_permission("attendance")),
):
    try:
        return service.check_out(user.id, data.date)
    except NoCheckInFound as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("", response_model=list[AttendanceOut])
def list_attendance(
    target_date: date = Query(...),
    status: Optional[str] = None,
    search: Optional[str] = None,
    department: Optional[str] = None,
    service: AttendanceService = Depends(get_attendance_service),
    _user: User = Depends(require_permission("staff")),
):
    return service.list_by_date(target_date, status=status, search=search, department=department)


@router.get("/stats", response_model=AttendanceStats)
def attendance_stats(
    target_date: date = Query(...),
    service: AttendanceService = Depends(get_attendance_service),
    _user: User = Depends(require_permission("staff")),
):
    return service.stats_for_date(target_date)


@router.post("/absent", response_model=AttendanceOut)
def mark_absent(
    data: MarkAbsentRequest,
    db: Session = Depends(get_db),
    service: AttendanceService = Depends(get_attendance_service),
    user: User = Depends(require_permission("staff")),
):
    if not db.query(User).filter(User.id == data.user_id).first():
        raise HTTPException(status_code=404, detail="User not found")
    record = service.mark_absent(data.user_id, data.date, data.notes)
    log_action(db, user, "update", "attendance", record.id, f"Marked {data.user_id} absent on {data.date}")
    db.commit()
    return record


@router.put("", response_model=AttendanceOut)
def upsert_attendance(
    data: AttendanceUpsert,
    db: Session = Depends(get_db),
    service: AttendanceService = Depends(get_attendance_service),
    user: User = Depends(require_permission("staff")),
):
    if not db.query(User).filter(User.id == data.user_id).first():
        raise HTTPException(status_code=404, detail="User not found")
    record = service.upsert_attendance(data.model_dump(exclude_unset=True))
    log_action(db, user, "update", "attendance", record.id, f"Edited attendance of {data.user_id} on {data.date}")
    db.commit()
    return record


@router.delete("/{record_id}")
def delete_attendance(
    record_id: str,
    db: Session = Depends(get_db),
    service: AttendanceService = Depends(get_attendance_service),
    user: User = Depends(require_permission("staff")),
):
    try:
        service.delete_attendance(record_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    log_action(db, user, "delete", "attendance", record_id, "Deleted attendance record")
    db.commit()
    return {"deleted": True, "id": record_id}
