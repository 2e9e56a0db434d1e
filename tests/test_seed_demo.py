from conftest import TODAY
from scripts.seed_demo import seed
from safari_ops.services.operations_service import OperationsService


class TestSeedDemo:

    def test_seed_builds_assignable_roster(self, db_session, store, clock):
        counts = seed(db_session, today=TODAY)
        assert counts == {"users": 7, "drivers": 3, "vehicles": 4, "bookings": 4, "trips": 4}

        snapshot = OperationsService(store, clock=clock).fetch_all_data()
        assert snapshot.stats.pending_assignments == 4
        assert snapshot.stats.available_drivers == 3
        assert snapshot.stats.operational_vehicles == 4
        assert snapshot.pending_trips[0].booking_reference == "SAF-2026-001"
        assert snapshot.pending_trips[0].priority == "urgent"

    def test_seed_is_skipped_when_fleet_exists(self, db_session):
        seed(db_session, today=TODAY)
        assert seed(db_session, today=TODAY) == {}
