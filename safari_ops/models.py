import uuid
from datetime import datetime

from sqlalchemy import (
    JSON, Boolean, Column, Date, DateTime, Float, ForeignKey, Index, Integer,
    Numeric, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from safari_ops.database import Base

TRIP_STATUSES = ("scheduled", "in_progress", "completed", "cancelled")


def _uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    hashed_password = Column(String(200), nullable=False)
    role = Column(String(40), nullable=False, default="customer_service")
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    audit_logs = relationship("AuditLog", back_populates="user")

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"


class AuditLog(Base):
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_created", "created_at"),
        Index("ix_audit_entity", "entity_type", "entity_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    username = Column(String(255), nullable=False)
    action = Column(String(50), nullable=False)  # create, update, delete, login, assign
    entity_type = Column(String(50), nullable=True)  # trip, vehicle, attendance, user
    entity_id = Column(String(36), nullable=True)
    details = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="audit_logs")

    def __repr__(self):
        return f"<Audit {self.action} by {self.username} at {self.created_at}>"


class Driver(Base):
    __tablename__ = "drivers"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    rating = Column(Float, nullable=True)
    experience = Column(String(100), nullable=True)
    languages = Column(JSON, nullable=False, default=list)
    specialties = Column(JSON, nullable=False, default=list)
    total_trips = Column(Integer, nullable=False, default=0)
    average_rating = Column(Float, nullable=True)
    on_time_percentage = Column(Float, nullable=True)
    next_available = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User")

    def __repr__(self):
        return f"<Driver {self.id} user={self.user_id}>"


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(String(36), primary_key=True, default=_uuid)
    plate = Column(String(50), unique=True, nullable=False, index=True)
    model = Column(String(200), nullable=True)
    status = Column(String(20), nullable=False, default="available")  # available, on_trip, maintenance
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Vehicle {self.plate} ({self.status})>"


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=_uuid)
    booking_reference = Column(String(50), unique=True, nullable=False)
    customer_name = Column(String(200), nullable=True)
    assigned_driver = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    assigned_vehicle = Column(String(36), ForeignKey("vehicles.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Booking {self.booking_reference}>"


class Trip(Base):
    __tablename__ = "trips"
    __table_args__ = (
        Index("ix_trips_status", "status"),
        Index("ix_trips_start_date", "start_date"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
    customer_name = Column(String(200), nullable=False)
    package_name = Column(String(200), nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    driver_id = Column(String(36), ForeignKey("drivers.id", ondelete="SET NULL"), nullable=True)
    vehicle_id = Column(String(36), ForeignKey("vehicles.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(20), nullable=False, default="scheduled")  # scheduled, in_progress, completed, cancelled
    progress = Column(Integer, nullable=False, default=0)
    current_location = Column(String(200), nullable=True)
    next_stop = Column(String(200), nullable=True)
    estimated_arrival = Column(String(50), nullable=True)
    guests = Column(Integer, nullable=False, default=1)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Trip {self.id} {self.status}>"


class DriverSchedule(Base):
    __tablename__ = "driver_schedule"
    __table_args__ = (
        UniqueConstraint("driver_id", "day_of_week", name="uq_schedule_driver_day"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    driver_id = Column(String(36), ForeignKey("drivers.id", ondelete="CASCADE"), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday
    available = Column(Boolean, nullable=False, default=True)
    trip_id = Column(String(36), ForeignKey("trips.id", ondelete="SET NULL"), nullable=True)
    notes = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<DriverSchedule driver={self.driver_id} day={self.day_of_week} available={self.available}>"


class Attendance(Base):
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_attendance_user_date"),
        Index("ix_attendance_date", "date"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    check_in = Column(String(5), nullable=True)  # HH:MM local time
    check_out = Column(String(5), nullable=True)
    status = Column(String(20), nullable=False, default="present")
    hours_worked = Column(Numeric(6, 2, asdecimal=False), nullable=False, default=0)
    overtime = Column(Numeric(6, 2, asdecimal=False), nullable=False, default=0)
    location = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Attendance {self.user_id} {self.date} {self.status}>"


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_target", "target_user_id", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    target_user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    actor_user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(20), nullable=False, default="info")
    event = Column(String(100), nullable=False)
    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSON, nullable=False, default=dict)
    read_at = Column(DateTime, nullable=True)
    dismissed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Notification {self.event} -> {self.target_user_id}>"
