from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

TripStatus = Literal["scheduled", "in_progress", "completed", "cancelled"]
VehicleStatus = Literal["available", "on_trip", "maintenance"]
DriverStatus = Literal["available", "on_trip", "on_leave"]  # on_leave is never derived
Priority = Literal["urgent", "high", "medium", "low"]
AttendanceStatus = Literal["present", "late", "absent", "working", "halfday"]
NotificationType = Literal["info", "success", "warning", "error"]


# --- Auth ---
class LoginRequest(BaseModel):
    email: str
    password: str


class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str


class UserCreate(BaseModel):
    email: str
    name: str
    password: str
    role: str = "customer_service"


class UserUpdate(BaseModel):
    name: Optional[str] = None
    role: Optional[str] = None
    is_active: Optional[bool] = None
    password: Optional[str] = None


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    email: str
    name: str
    role: str
    is_active: bool
    created_at: datetime


class MenuOut(BaseModel):
    role: str
    permissions: list[str]


# --- Vehicle ---
class VehicleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    plate: str
    model: Optional[str] = None
    status: VehicleStatus


class VehicleStatusUpdate(BaseModel):
    status: VehicleStatus


# --- Operations ---
class ActiveTrip(BaseModel):
    id: str
    customer_name: str
    package_name: Optional[str] = None
    driver_id: Optional[str] = None
    driver_name: Optional[str] = None
    vehicle_id: Optional[str] = None
    vehicle_plate: Optional[str] = None
    current_location: str
    next_stop: Optional[str] = None
    estimated_arrival: Optional[str] = None
    progress: int = 0
    status: TripStatus


class CurrentTrip(BaseModel):
    id: str
    status: TripStatus
    start_date: date
    end_date: Optional[date] = None
    current_location: Optional[str] = None
    vehicle_id: Optional[str] = None


class DriverWithStatus(BaseModel):
    id: str
    user_id: Optional[str] = None
    name: str
    email: str = ""
    rating: float = 0
    experience: str = "N/A"
    languages: list[str] = []
    specialties: list[str] = []
    total_trips: int = 0
    average_rating: float = 0
    on_time_percentage: float = 0
    next_available: Optional[date] = None
    status: DriverStatus
    current_trip_id: Optional[str] = None
    current_trip: Optional[CurrentTrip] = None
    vehicle_id: Optional[str] = None
    vehicle_plate: Optional[str] = None
    days_until_available: int = 0


class PendingTrip(BaseModel):
    id: str
    booking_id: Optional[str] = None
    booking_reference: str
    customer_name: str
    package_name: Optional[str] = None
    start_date: date
    guests: int
    notes: Optional[str] = None
    priority: Priority


class OperationsStats(BaseModel):
    active_trips: int = 0
    available_drivers: int = 0
    operational_vehicles: int = 0
    pending_assignments: int = 0
    total_vehicles: int = 0


class OperationsSnapshot(BaseModel):
    active_trips: list[ActiveTrip]
    drivers: list[DriverWithStatus]
    pending_trips: list[PendingTrip]
    vehicles: list[VehicleOut]
    stats: OperationsStats


class AssignmentRequest(BaseModel):
    trip_id: str
    driver_id: str
    vehicle_id: str


class AssignmentResult(BaseModel):
    success: bool
    snapshot: OperationsSnapshot
    warnings: list[str] = []


class TripStatusUpdate(BaseModel):
    status: TripStatus
    progress: Optional[int] = Field(None, ge=0, le=100)
    current_location: Optional[str] = None


class DriverScheduleUpdate(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6)
    available: bool
    trip_id: Optional[str] = None


class DriverScheduleOut(BaseModel):
    id: str
    driver_id: str
    day_of_week: int
    available: bool
    trip_id: Optional[str] = None
    notes: Optional[str] = None


# --- Attendance ---
class AttendanceOut(BaseModel):
    id: str
    user_id: str
    date: date
    check_in: Optional[str] = None
    check_out: Optional[str] = None
    status: AttendanceStatus
    hours_worked: float = 0
    overtime: float = 0
    location: Optional[str] = None
    notes: Optional[str] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    user_role: Optional[str] = None


class CheckInRequest(BaseModel):
    location: Optional[str] = None


class CheckOutRequest(BaseModel):
    date: date


class MarkAbsentRequest(BaseModel):
    user_id: str
    date: date
    notes: Optional[str] = None


class AttendanceUpsert(BaseModel):
    user_id: str
    date: date
    check_in: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")
    check_out: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")
    status: Optional[AttendanceStatus] = None
    hours_worked: Optional[float] = Field(None, ge=0)
    overtime: Optional[float] = Field(None, ge=0)
    location: Optional[str] = None
    notes: Optional[str] = None


class AttendanceStats(BaseModel):
    total_employees: int
    present: int
    late: int
    absent: int
    working: int
    attendance_rate: int


# --- Notifications ---
class NotificationOut(BaseModel):
    id: str
    target_user_id: str
    actor_user_id: Optional[str] = None
    title: str
    message: str
    type: NotificationType
    event: str
    metadata: dict[str, Any] = {}
    read_at: Optional[datetime] = None
    dismissed_at: Optional[datetime] = None
    created_at: datetime

