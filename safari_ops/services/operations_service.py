"""Resource assignment engine.

Keeps the operations view (trips in progress, driver roster, trips waiting
for a driver) and binds drivers and vehicles to pending trips.

Driver availability and trip priority are derived on read, never stored.
"""
import logging
import math
from datetime import date, datetime, time
from typing import Callable, Iterable, Optional

from safari_ops.exceptions import AssignmentConflict, InvalidTransition, NotFoundError
from safari_ops.models import TRIP_STATUSES
from safari_ops.permissions import ASSIGNMENT_NOTIFY_ROLES
from safari_ops.schemas import (
    ActiveTrip, AssignmentResult, CurrentTrip, DriverScheduleOut, DriverWithStatus,
    OperationsSnapshot, OperationsStats, PendingTrip, VehicleOut,
)
from safari_ops.services.notification_service import NotificationService, build_notification
from safari_ops.store import DataStore, StoreError

logger = logging.getLogger(__name__)

DEFAULT_LOCATION = "In transit"
UNKNOWN_DRIVER = "Unknown Driver"
SECONDS_PER_DAY = 24 * 60 * 60
FINISHED_STATUSES = ("completed", "cancelled")
WATCHED_TABLES = ("trips", "drivers", "vehicles", "bookings")


def days_until_available(end_date: Optional[date], today: date) -> int:
    """Whole days until a trip ending on `end_date` frees its driver.

    Both sides are calendar dates, so a trip ending today (or earlier) gives 0.
    """
    if end_date is None:
        return 0
    return max(0, (end_date - today).days)


def days_until_start(start_date: date, now: datetime) -> int:
    """Days until `start_date` measured from the wall clock, rounded up.

    Unlike `days_until_available` this is not normalized to midnight: at
    18:00 a trip starting tomorrow is 1 day out, at 00:00 it is still 1.
    """
    delta = datetime.combine(start_date, time.min) - now
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)


def trip_priority(days: int) -> str:
    if days <= 1:
        return "urgent"
    if days <= 3:
        return "high"
    if days <= 7:
        return "medium"
    return "low"


def compute_stats(
    active_trips: list[ActiveTrip],
    drivers: list[DriverWithStatus],
    pending_trips: list[PendingTrip],
    available_vehicles: list[VehicleOut],
    total_vehicles: int,
) -> OperationsStats:
    return OperationsStats(
        active_trips=len(active_trips),
        available_drivers=sum(1 for d in drivers if d.status == "available"),
        operational_vehicles=len(available_vehicles),
        pending_assignments=len(pending_trips),
        total_vehicles=total_vehicles,
    )


class OperationsService:
    def __init__(
        self,
        store: DataStore,
        notifications: Optional[NotificationService] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.notifications = notifications or NotificationService(store)
        self.clock = clock

    # --- lookups ---

    def _by_id(self, table: str, ids: Iterable[Optional[str]]) -> dict[str, dict]:
        wanted = {i for i in ids if i}
        if not wanted:
            return {}
        return {row["id"]: row for row in self.store.select(table, {"id": list(wanted)})}

    def _require(self, table: str, entity: str, entity_id: str) -> dict:
        row = self.store.select_one(table, {"id": entity_id})
        if row is None:
            raise NotFoundError(entity, entity_id)
        return row

    # --- read side ---

    def list_active_trips(self) -> list[ActiveTrip]:
        trips = self.store.select("trips", {"status": "in_progress"}, order=["-created_at"])
        drivers = self._by_id("drivers", (t["driver_id"] for t in trips))
        users = self._by_id("users", (d["user_id"] for d in drivers.values()))
        vehicles = self._by_id("vehicles", (t["vehicle_id"] for t in trips))

        result = []
        for trip in trips:
            driver = drivers.get(trip["driver_id"])
            user = users.get(driver["user_id"]) if driver else None
            vehicle = vehicles.get(trip["vehicle_id"])
            result.append(ActiveTrip(
                id=trip["id"],
                customer_name=trip["customer_name"],
                package_name=trip["package_name"],
                driver_id=trip["driver_id"],
                driver_name=user["name"] if user else None,
                vehicle_id=trip["vehicle_id"],
                vehicle_plate=vehicle["plate"] if vehicle else None,
                current_location=trip["current_location"] or DEFAULT_LOCATION,
                next_stop=trip["next_stop"],
                estimated_arrival=trip["estimated_arrival"],
                progress=trip["progress"] or 0,
                status=trip["status"],
            ))
        return result

    def list_drivers(self) -> list[DriverWithStatus]:
        drivers = self.store.select("drivers", order=["created_at"])
        users = self._by_id("users", (d["user_id"] for d in drivers))

        # newest in-progress trip per driver
        current: dict[str, dict] = {}
        for trip in self.store.select("trips", {"status": "in_progress"}, order=["-created_at"]):
            if trip["driver_id"]:
                current.setdefault(trip["driver_id"], trip)
        vehicles = self._by_id("vehicles", (t["vehicle_id"] for t in current.values()))

        today = self.clock().date()
        result = []
        for driver in drivers:
            user = users.get(driver["user_id"]) or {}
            trip = current.get(driver["id"])
            vehicle = vehicles.get(trip["vehicle_id"]) if trip else None
            result.append(DriverWithStatus(
                id=driver["id"],
                user_id=driver["user_id"],
                name=user.get("name") or UNKNOWN_DRIVER,
                email=user.get("email") or "",
                rating=driver["rating"] or 0,
                experience=driver["experience"] or "N/A",
                languages=driver["languages"] or [],
                specialties=driver["specialties"] or [],
                total_trips=driver["total_trips"] or 0,
                average_rating=driver["average_rating"] or 0,
                on_time_percentage=driver["on_time_percentage"] or 0,
                next_available=driver["next_available"],
                status="on_trip" if trip else "available",
                current_trip_id=trip["id"] if trip else None,
                current_trip=CurrentTrip(**trip) if trip else None,
                vehicle_id=trip["vehicle_id"] if trip else None,
                vehicle_plate=vehicle["plate"] if vehicle else None,
                days_until_available=days_until_available(trip["end_date"], today) if trip else 0,
            ))
        return result

    def list_pending_trips(self) -> list[PendingTrip]:
        trips = self.store.select(
            "trips", {"status": "scheduled", "driver_id": None}, order=["start_date"],
        )
        bookings = self._by_id("bookings", (t["booking_id"] for t in trips))

        now = self.clock()
        result = []
        for trip in trips:
            booking = bookings.get(trip["booking_id"])
            result.append(PendingTrip(
                id=trip["id"],
                booking_id=trip["booking_id"],
                booking_reference=booking["booking_reference"] if booking else f"BK-{trip['id'][:8]}",
                customer_name=trip["customer_name"],
                package_name=trip["package_name"],
                start_date=trip["start_date"],
                guests=trip["guests"],
                notes=trip["notes"],
                priority=trip_priority(days_until_start(trip["start_date"], now)),
            ))
        return result

    def list_available_vehicles(self) -> list[VehicleOut]:
        rows = self.store.select("vehicles", {"status": "available"}, order=["model"])
        return [VehicleOut(**row) for row in rows]

    def fetch_all_data(self) -> OperationsSnapshot:
        """Read every list the operations dashboard shows, plus derived stats."""
        try:
            active_trips = self.list_active_trips()
            drivers = self.list_drivers()
            pending_trips = self.list_pending_trips()
            vehicles = self.list_available_vehicles()
            total_vehicles = self.store.count("vehicles")
        except StoreError as exc:
            logger.error("Error fetching operations data: %s", exc)
            raise
        return OperationsSnapshot(
            active_trips=active_trips,
            drivers=drivers,
            pending_trips=pending_trips,
            vehicles=vehicles,
            stats=compute_stats(active_trips, drivers, pending_trips, vehicles, total_vehicles),
        )

    def get_driver_schedule(self, driver_id: str) -> list[DriverScheduleOut]:
        self._require("drivers", "driver", driver_id)
        rows = self.store.select("driver_schedule", {"driver_id": driver_id}, order=["day_of_week"])
        return [DriverScheduleOut(**row) for row in rows]

    # --- write side ---

    def assign_trip_resources(self, trip_id: str, driver_id: str, vehicle_id: str) -> AssignmentResult:
        """Bind a driver and a vehicle to a trip and start it.

        The trip and vehicle updates commit together; the vehicle is only
        claimed while it is still ``available``. Reassigning a trip that is
        already under way hands its previous vehicle back in the same commit.
        Mirroring the assignment onto the booking and notifying staff happen
        afterwards and never undo it: their failures come back as ``warnings``.

        Whether the driver is free is not checked here.
        """
        try:
            driver = self._require("drivers", "driver", driver_id)
            self._require("vehicles", "vehicle", vehicle_id)
            with self.store.transaction():
                current = self._require("trips", "trip", trip_id)
                if current["status"] in FINISHED_STATUSES:
                    raise InvalidTransition(f"Trip {trip_id} is {current['status']} and cannot be reassigned")
                held = current["vehicle_id"] if current["status"] == "in_progress" else None

                trips = self.store.update(
                    "trips",
                    {
                        "driver_id": driver_id,
                        "vehicle_id": vehicle_id,
                        "status": "in_progress",
                        "updated_at": self.clock(),
                    },
                    {"id": trip_id},
                )
                if held != vehicle_id:
                    if held:
                        self._release_vehicle(held)
                    self._claim_vehicle(vehicle_id)
        except (StoreError, NotFoundError, AssignmentConflict, InvalidTransition) as exc:
            logger.error(
                "Error assigning resources to trip %s (driver=%s, vehicle=%s): %s",
                trip_id, driver_id, vehicle_id, exc,
            )
            raise

        logger.info("Assigned driver %s and vehicle %s to trip %s", driver_id, vehicle_id, trip_id)

        warnings = [
            w for w in (
                self._mirror_booking(trips[0], driver, vehicle_id),
                self._notify_assignment(trip_id, driver, vehicle_id),
            )
            if w
        ]
        return AssignmentResult(success=True, snapshot=self.fetch_all_data(), warnings=warnings)

    def _claim_vehicle(self, vehicle_id: str):
        claimed = self.store.update("vehicles", {"status": "on_trip"}, {"id": vehicle_id, "status": "available"})
        if not claimed:
            vehicle = self.store.select_one("vehicles", {"id": vehicle_id}) or {}
            raise AssignmentConflict(
                f"Vehicle '{vehicle.get('plate', vehicle_id)}' is no longer available "
                f"(status: {vehicle.get('status', 'removed')})"
            )

    def _release_vehicle(self, vehicle_id: str):
        self.store.update("vehicles", {"status": "available"}, {"id": vehicle_id, "status": "on_trip"})

    def _mirror_booking(self, trip: dict, driver: dict, vehicle_id: str) -> Optional[str]:
        booking_id = trip["booking_id"]
        if not booking_id or not driver["user_id"]:
            return None
        try:
            self.store.update(
                "bookings",
                {"assigned_driver": driver["user_id"], "assigned_vehicle": vehicle_id},
                {"id": booking_id},
            )
        except StoreError as exc:
            logger.warning("Booking update failed for booking %s (trip %s): %s", booking_id, trip["id"], exc)
            return f"Booking {booking_id} was not updated"
        return None

    def _notify_assignment(self, trip_id: str, driver: dict, vehicle_id: str) -> Optional[str]:
        try:
            payloads = [
                build_notification(
                    user_id,
                    "Trip assigned",
                    f"Trip {trip_id} assigned to driver",
                    "trip.assigned",
                    metadata={"trip_id": trip_id, "driver_id": driver["id"], "vehicle_id": vehicle_id},
                )
                for user_id in self.notifications.user_ids_for_roles(ASSIGNMENT_NOTIFY_ROLES)
            ]
            if driver["user_id"]:
                payloads.append(build_notification(
                    driver["user_id"],
                    "New trip assigned",
                    "You have been assigned a new trip",
                    "trip.assigned.to_driver",
                    type="success",
                    metadata={"trip_id": trip_id, "vehicle_id": vehicle_id},
                ))
            self.notifications.send(payloads)
        except StoreError as exc:
            logger.warning("Failed to send assignment notifications for trip %s: %s", trip_id, exc)
            return "Assignment notifications were not sent"
        return None

    def update_driver_schedule(
        self,
        driver_id: str,
        day_of_week: int,
        available: bool,
        trip_id: Optional[str] = None,
    ) -> OperationsSnapshot:
        """Set a driver's availability for one weekday (0 = Sunday)."""
        if not 0 <= day_of_week <= 6:
            raise ValueError(f"day_of_week must be between 0 and 6, got {day_of_week}")
        try:
            self._require("drivers", "driver", driver_id)
            if trip_id:
                self._require("trips", "trip", trip_id)
            self.store.upsert(
                "driver_schedule",
                {
                    "driver_id": driver_id,
                    "day_of_week": day_of_week,
                    "available": available,
                    "trip_id": trip_id or None,
                },
                conflict_keys=("driver_id", "day_of_week"),
            )
        except (StoreError, NotFoundError) as exc:
            logger.error("Error updating schedule for driver %s day %s: %s", driver_id, day_of_week, exc)
            raise
        return self.fetch_all_data()

    def update_trip_status(
        self,
        trip_id: str,
        status: str,
        progress: Optional[int] = None,
        current_location: Optional[str] = None,
    ) -> OperationsSnapshot:
        """Move a trip to `status`, optionally recording progress and location.

        Moving a trip out of ``in_progress`` puts its vehicle back to
        ``available``; starting one claims its vehicle.
        """
        if status not in TRIP_STATUSES:
            raise InvalidTransition(f"Unknown trip status '{status}'")
        if progress is not None and not 0 <= progress <= 100:
            raise ValueError(f"progress must be between 0 and 100, got {progress}")

        updates = {"status": status, "updated_at": self.clock()}
        if progress is not None:
            updates["progress"] = progress
        if current_location:
            updates["current_location"] = current_location

        try:
            with self.store.transaction():
                trip = self._require("trips", "trip", trip_id)
                if status == "in_progress" and not (trip["driver_id"] and trip["vehicle_id"]):
                    raise InvalidTransition("A trip needs a driver and a vehicle before it can start")

                self.store.update("trips", updates, {"id": trip_id})
                was_running = trip["status"] == "in_progress"
                if was_running and status != "in_progress" and trip["vehicle_id"]:
                    self._release_vehicle(trip["vehicle_id"])
                elif status == "in_progress" and not was_running:
                    self._claim_vehicle(trip["vehicle_id"])
        except (StoreError, NotFoundError, AssignmentConflict, InvalidTransition) as exc:
            logger.error("Error updating trip %s to status %s: %s", trip_id, status, exc)
            raise
        return self.fetch_all_data()

    def watch(self, on_change: Callable[[OperationsSnapshot], None]) -> Callable[[], None]:
        """Call `on_change` with a fresh snapshot whenever trips, drivers,
        vehicles or bookings change. Returns a function that stops watching."""

        def _refresh(change: dict):
            logger.debug("%s on %s, refreshing operations data", change["event"], change["table"])
            on_change(self.fetch_all_data())

        stops = [self.store.subscribe(table, _refresh) for table in WATCHED_TABLES]

        def _stop():
            for stop in stops:
                stop()

        return _stop
