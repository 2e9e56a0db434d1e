"""Seed a demo roster: staff accounts, drivers, vehicles, bookings and trips.

Skips seeding when the database already holds vehicles, so it is safe to run
on every fresh checkout.

Usage:
    python -m scripts.seed_demo
"""
import sys
import os
from datetime import date, timedelta

# Add parent to path so we can import safari_ops
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from safari_ops.auth import hash_password
from safari_ops.database import Base, SessionLocal, engine
from safari_ops.models import Booking, Driver, Trip, User, Vehicle

DEMO_PASSWORD = "safari123"

STAFF = [
    ("coordinator@safari-ops.local", "Wanjiku Njoroge", "operations_coordinator"),
    ("bookings@safari-ops.local", "Brian Otieno", "booking_manager"),
    ("finance@safari-ops.local", "Halima Said", "finance_officer"),
    ("support@safari-ops.local", "Kevin Mutua", "customer_service"),
]

# (email, name, experience, languages, specialties)
DRIVERS = [
    ("joseph@safari-ops.local", "Joseph Kamau", "8 years", ["English", "Swahili"], ["Big Five", "Photography"]),
    ("esther@safari-ops.local", "Esther Achieng", "5 years", ["English", "Swahili", "French"], ["Birding"]),
    ("daniel@safari-ops.local", "Daniel Lekishon", "12 years", ["English", "Maa"], ["Walking safaris"]),
]

VEHICLES = [
    ("KDA 412M", "Toyota Land Cruiser 79"),
    ("KDB 907T", "Toyota Land Cruiser 76"),
    ("KDC 118P", "Nissan Safari Van"),
    ("KDD 655L", "Toyota HiAce Pop-top"),
]

# (reference, customer, package, starts in days, length in days, guests)
BOOKINGS = [
    ("SAF-2026-001", "The Okafor Family", "Masai Mara Explorer", 1, 3, 4),
    ("SAF-2026-002", "Lena Hoffmann", "Amboseli & Tsavo", 3, 5, 2),
    ("SAF-2026-003", "Kenji Watanabe", "Samburu Birding Week", 6, 7, 1),
    ("SAF-2026-004", "Garcia Honeymoon", "Lake Nakuru Getaway", 10, 2, 2),
]


def seed(db, today: date | None = None) -> dict:
    """Insert the demo rows through `db` and commit. Returns per-table counts."""
    today = today or date.today()
    if db.query(Vehicle).first():
        print("Vehicles already present, skipping demo seed")
        return {}

    hashed = hash_password(DEMO_PASSWORD)
    counts = {"users": 0, "drivers": 0, "vehicles": 0, "bookings": 0, "trips": 0}

    for email, name, role in STAFF:
        if db.query(User).filter(User.email == email).first():
            continue
        db.add(User(email=email, name=name, role=role, hashed_password=hashed))
        counts["users"] += 1

    for email, name, experience, languages, specialties in DRIVERS:
        user = db.query(User).filter(User.email == email).first()
        if not user:
            user = User(email=email, name=name, role="driver", hashed_password=hashed)
            db.add(user)
            db.flush()
            counts["users"] += 1
        db.add(Driver(
            user_id=user.id,
            experience=experience,
            languages=languages,
            specialties=specialties,
            rating=4.7,
            average_rating=4.7,
            on_time_percentage=96.0,
        ))
        counts["drivers"] += 1

    for plate, model in VEHICLES:
        db.add(Vehicle(plate=plate, model=model, status="available"))
        counts["vehicles"] += 1

    for reference, customer, package, starts_in, length, guests in BOOKINGS:
        booking = Booking(booking_reference=reference, customer_name=customer)
        db.add(booking)
        db.flush()
        start = today + timedelta(days=starts_in)
        db.add(Trip(
            booking_id=booking.id,
            customer_name=customer,
            package_name=package,
            start_date=start,
            end_date=start + timedelta(days=length),
            guests=guests,
        ))
        counts["bookings"] += 1
        counts["trips"] += 1

    db.commit()
    return counts


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        counts = seed(db)
        for table, n in counts.items():
            print(f"  {table}: {n}")
        if counts:
            print(f"Demo accounts use the password '{DEMO_PASSWORD}'")
    except Exception as e:
        db.rollback()
        print(f"ERROR: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
