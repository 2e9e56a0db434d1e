"""Staff attendance: check-in lateness, hours worked and overtime.

One row per (user_id, date). Check-in and check-out times are stored as
local "HH:MM" strings next to the calendar date.
"""
import logging
import math
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from safari_ops.config import LATE_THRESHOLD_HOUR, STANDARD_WORKDAY_HOURS
from safari_ops.exceptions import NoCheckInFound, NotFoundError
from safari_ops.permissions import VALID_ROLES
from safari_ops.schemas import AttendanceOut, AttendanceStats
from safari_ops.store import DataStore

logger = logging.getLogger(__name__)

TIME_FORMAT = "%H:%M"
CONFLICT_KEYS = ("user_id", "date")
DEFAULT_LOCATION = "Office"
LATE_NOTE = "Late arrival"
ABSENT_NOTE = "Marked absent"

DEPARTMENTS = {
    "super_admin": "Management",
    "admin": "Management",
    "admin_helper": "Management",
    "operations_coordinator": "Operations",
    "driver": "Operations",
    "customer_service": "Support",
    "finance_officer": "Finance",
    "booking_manager": "Booking",
}


def department_for_role(role: Optional[str]) -> str:
    return DEPARTMENTS.get(role or "", "General")


def compute_hours(day: date, check_in: str, check_out: str) -> float:
    """Hours between two HH:MM times on `day`, rounded to 2 decimals.

    A check-out earlier than the check-in belongs to the next day.
    """
    start = datetime.combine(day, datetime.strptime(check_in, TIME_FORMAT).time())
    end = datetime.combine(day, datetime.strptime(check_out, TIME_FORMAT).time())
    if end < start:
        end += timedelta(days=1)
    return round((end - start).total_seconds() / 3600, 2)


def compute_overtime(hours_worked: float) -> float:
    return round(max(0.0, hours_worked - STANDARD_WORKDAY_HOURS), 2)


class AttendanceService:
    def __init__(self, store: DataStore, clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.clock = clock

    def upsert_attendance(self, record: dict) -> AttendanceOut:
        """Insert or merge the row for (user_id, date); only given keys are written."""
        row = self.store.upsert("attendance", record, CONFLICT_KEYS)
        return AttendanceOut(**row)

    def check_in(self, user_id: str, location: Optional[str] = None) -> AttendanceOut:
        now = self.clock()
        late = now.hour >= LATE_THRESHOLD_HOUR
        record = self.upsert_attendance({
            "user_id": user_id,
            "date": now.date(),
            "check_in": now.strftime(TIME_FORMAT),
            "status": "late" if late else "present",
            "location": location or DEFAULT_LOCATION,
            "notes": LATE_NOTE if late else None,
        })
        logger.info("User %s checked in at %s (%s)", user_id, record.check_in, record.status)
        return record

    def check_out(self, user_id: str, day: date) -> AttendanceOut:
        existing = self.store.select_one("attendance", {"user_id": user_id, "date": day})
        if not existing or not existing["check_in"]:
            logger.warning("Check-out refused for user %s on %s: no check-in", user_id, day)
            raise NoCheckInFound(user_id, day)

        check_out = self.clock().strftime(TIME_FORMAT)
        hours_worked = compute_hours(day, existing["check_in"], check_out)
        record = self.upsert_attendance({
            "user_id": user_id,
            "date": day,
            "check_out": check_out,
            "hours_worked": hours_worked,
            "overtime": compute_overtime(hours_worked),
        })
        logger.info("User %s checked out at %s after %.2fh", user_id, check_out, hours_worked)
        return record

    def mark_absent(self, user_id: str, day: date, notes: Optional[str] = None) -> AttendanceOut:
        return self.upsert_attendance({
            "user_id": user_id,
            "date": day,
            "status": "absent",
            "notes": notes or ABSENT_NOTE,
            "hours_worked": 0,
            "overtime": 0,
        })

    def delete_attendance(self, record_id: str):
        if not self.store.delete("attendance", {"id": record_id}):
            raise NotFoundError("attendance record", record_id)
        logger.info("Deleted attendance record %s", record_id)

    def list_by_date(
        self,
        day: date,
        status: Optional[str] = None,
        search: Optional[str] = None,
        department: Optional[str] = None,
    ) -> list[AttendanceOut]:
        filters = {"date": day}
        if status and status != "all":
            filters["status"] = status
        rows = self.store.select("attendance", filters, order=["check_in"])

        user_ids = list({row["user_id"] for row in rows})
        users = {u["id"]: u for u in self.store.select("users", {"id": user_ids})} if user_ids else {}

        records = []
        for row in rows:
            user = users.get(row["user_id"]) or {}
            records.append(AttendanceOut(
                **row,
                user_name=user.get("name"),
                user_email=user.get("email"),
                user_role=user.get("role"),
            ))

        if search:
            needle = search.lower()
            records = [
                r for r in records
                if any(needle in (value or "").lower() for value in (r.user_name, r.user_email, r.user_role))
            ]
        if department and department != "all":
            records = [r for r in records if department_for_role(r.user_role).lower() == department.lower()]
        return records

    def stats_for_date(self, day: date) -> AttendanceStats:
        statuses = [row["status"] for row in self.store.select("attendance", {"date": day})]
        total = self.store.count("users", {"role": list(VALID_ROLES)})
        present = statuses.count("present")
        late = statuses.count("late")
        working = statuses.count("working")
        rate = (present + late + working) / total * 100 if total else 0
        return AttendanceStats(
            total_employees=total,
            present=present,
            late=late,
            absent=statuses.count("absent"),
            working=working,
            attendance_rate=math.floor(rate + 0.5),
        )
