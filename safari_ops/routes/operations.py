from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from safari_ops.auth import require_permission
from safari_ops.database import get_db
from safari_ops.exceptions import AssignmentConflict, NotFoundError
from safari_ops.models import User
from safari_ops.schemas import (
    ActiveTrip, AssignmentRequest, AssignmentResult, DriverScheduleOut, DriverScheduleUpdate,
    DriverWithStatus, OperationsSnapshot, OperationsStats, PendingTrip, TripStatusUpdate, VehicleOut,
)
from safari_ops.services.audit_service import log_action
from safari_ops.services.operations_service import OperationsService
from safari_ops.store import DataStore, get_store

router = APIRouter(prefix="/api/operations", tags=["operations"])


def get_operations_service(store: DataStore = Depends(get_store)) -> OperationsService:
    return OperationsService(store)


@router.get("", response_model=OperationsSnapshot)
def get_snapshot(
    service: OperationsService = Depends(get_operations_service),
    _user: User = Depends(require_permission("trips")),
):
    return service.fetch_all_data()


@router.get("/active-trips", response_model=list[ActiveTrip])
def list_active_trips(
    service: OperationsService = Depends(get_operations_service),
    _user: User = Depends(require_permission("trips")),
):
    return service.list_active_trips()


@router.get("/pending-trips", response_model=list[PendingTrip])
def list_pending_trips(
    service: OperationsService = Depends(get_operations_service),
    _user: User = Depends(require_permission("trips")),
):
    return service.list_pending_trips()


@router.get("/drivers", response_model=list[DriverWithStatus])
def list_drivers(
    service: OperationsService = Depends(get_operations_service),
    _user: User = Depends(require_permission("drivers")),
):
    return service.list_drivers()


@router.get("/vehicles", response_model=list[VehicleOut])
def list_available_vehicles(
    service: OperationsService = Depends(get_operations_service),
    _user: User = Depends(require_permission("vehicles")),
):
    return service.list_available_vehicles()


@router.get("/stats", response_model=OperationsStats)
def get_stats(
    service: OperationsService = Depends(get_operations_service),
    _user: User = Depends(require_permission("trips")),
):
    return service.fetch_all_data().stats


@router.post("/assign", response_model=AssignmentResult)
def assign_trip_resources(
    data: AssignmentRequest,
    db: Session = Depends(get_db),
    service: OperationsService = Depends(get_operations_service),
    user: User = Depends(require_permission("trips")),
):
    try:
        result = service.assign_trip_resources(data.trip_id, data.driver_id, data.vehicle_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except AssignmentConflict as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    log_action(
        db, user, "assign", "trip", data.trip_id,
        f"Assigned driver {data.driver_id} and vehicle {data.vehicle_id}",
    )
    db.commit()
    return result


@router.put("/trips/{trip_id}/status", response_model=OperationsSnapshot)
def update_trip_status(
    trip_id: str,
    data: TripStatusUpdate,
    db: Session = Depends(get_db),
    service: OperationsService = Depends(get_operations_service),
    user: User = Depends(require_permission("trips")),
):
    try:
        snapshot = service.update_trip_status(trip_id, data.status, data.progress, data.current_location)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except AssignmentConflict as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    log_action(db, user, "update", "trip", trip_id, f"Changed trip status to {data.status}")
    db.commit()
    return snapshot


@router.get("/drivers/{driver_id}/schedule", response_model=list[DriverScheduleOut])
def get_driver_schedule(
    driver_id: str,
    service: OperationsService = Depends(get_operations_service),
    _user: User = Depends(require_permission("drivers")),
):
    try:
        return service.get_driver_schedule(driver_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/drivers/{driver_id}/schedule", response_model=OperationsSnapshot)
def update_driver_schedule(
    driver_id: str,
    data: DriverScheduleUpdate,
    db: Session = Depends(get_db),
    service: OperationsService = Depends(get_operations_service),
    user: User = Depends(require_permission("drivers")),
):
    try:
        snapshot = service.update_driver_schedule(driver_id, data.day_of_week, data.available, data.trip_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    log_action(
        db, user, "update", "driver", driver_id,
        f"Schedule day {data.day_of_week}: available={data.available}",
    )
    db.commit()
    return snapshot
