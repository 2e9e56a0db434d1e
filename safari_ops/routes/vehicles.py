from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from safari_ops.auth import require_permission
from safari_ops.database import get_db
from safari_ops.models import Vehicle, User
from safari_ops.schemas import VehicleOut, VehicleStatus, VehicleStatusUpdate
from safari_ops.services.audit_service import log_action

router = APIRouter(prefix="/api/vehicles", tags=["vehicles"])


class VehicleCreate(BaseModel):
    plate: str
    model: Optional[str] = None


@router.get("", response_model=list[VehicleOut])
def list_vehicles(
    status: Optional[VehicleStatus] = None,
    db: Session = Depends(get_db),
    _user: User = Depends(require_permission("vehicles")),
):
    q = db.query(Vehicle)
    if status:
        q = q.filter(Vehicle.status == status)
    return q.order_by(Vehicle.plate).all()


@router.get("/search", response_model=list[VehicleOut])
def search_vehicles(
    q: str = Query("", min_length=0),
    db: Session = Depends(get_db),
    _user: User = Depends(require_permission("vehicles")),
):
    query = db.query(Vehicle)
    if q:
        query = query.filter((Vehicle.plate.ilike(f"%{q}%")) | (Vehicle.model.ilike(f"%{q}%")))
    return query.order_by(Vehicle.plate).limit(20).all()


@router.post("", response_model=VehicleOut, status_code=201)
def create_vehicle(
    data: VehicleCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("vehicles")),
):
    plate = data.plate.strip().upper()
    if not plate:
        raise HTTPException(status_code=400, detail="Plate is required")
    if db.query(Vehicle).filter(Vehicle.plate == plate).first():
        raise HTTPException(status_code=409, detail=f"Vehicle '{plate}' already exists")

    vehicle = Vehicle(plate=plate, model=data.model, status="available")
    db.add(vehicle)
    db.flush()
    log_action(db, user, "create", "vehicle", vehicle.id, f"Added vehicle '{plate}'")
    db.commit()
    db.refresh(vehicle)
    return vehicle


@router.post("/{vehicle_id}/status", response_model=VehicleOut)
def update_vehicle_status(
    vehicle_id: str,
    data: VehicleStatusUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("vehicles")),
):
    """Send a vehicle to maintenance or back into service.

    ``on_trip`` is only set by trip assignment.
    """
    vehicle = db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()
    if not vehicle:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    if data.status == "on_trip":
        raise HTTPException(status_code=400, detail="Vehicles are put on a trip by assigning them to one")
    if vehicle.status == "on_trip":
        raise HTTPException(status_code=409, detail=f"Vehicle '{vehicle.plate}' is on a trip")

    old_status = vehicle.status
    vehicle.status = data.status
    log_action(db, user, "update", "vehicle", vehicle.id,
               f"Changed vehicle '{vehicle.plate}' status: {old_status} -> {data.status}")
    db.commit()
    db.refresh(vehicle)
    return vehicle
