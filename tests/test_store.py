import pytest
from sqlalchemy.orm import sessionmaker

from conftest import TODAY
from safari_ops.store import ChangeFeed, SqlAlchemyStore, StoreError


class TestQueries:

    def test_null_and_in_filters(self, store, factory):
        driver = factory.driver()
        loose = factory.trip(start_in_days=1)
        taken = factory.trip(start_in_days=2, driver_id=driver.id)
        done = factory.trip(start_in_days=3, status="completed")

        assert {r["id"] for r in store.select("trips", {"driver_id": None})} == {loose.id, done.id}
        rows = store.select("trips", {"status": ["scheduled", "completed"]}, order=["-start_date"])
        assert [r["id"] for r in rows] == [done.id, taken.id, loose.id]

    def test_limit_and_select_one(self, store, factory):
        factory.vehicle("KDA 1")
        factory.vehicle("KDA 2")
        assert len(store.select("vehicles", order=["plate"], limit=1)) == 1
        assert store.select_one("vehicles", {"plate": "KDA 2"})["plate"] == "KDA 2"
        assert store.select_one("vehicles", {"plate": "nope"}) is None

    def test_count(self, store, factory):
        factory.vehicle(status="maintenance")
        factory.vehicle()
        assert store.count("vehicles") == 2
        assert store.count("vehicles", {"status": "available"}) == 1

    def test_unknown_table_or_column(self, store):
        with pytest.raises(StoreError, match="Unknown table"):
            store.select("spaceships")
        with pytest.raises(StoreError, match="Unknown column"):
            store.select("vehicles", {"wheels": 4})
        with pytest.raises(StoreError, match="Unknown column"):
            store.insert("vehicles", {"plate": "X", "colour": "green"})

    def test_reserved_column_name_round_trips(self, store, driver_user):
        [row] = store.insert("notifications", {
            "target_user_id": driver_user.id,
            "title": "Hello",
            "message": "Welcome aboard",
            "event": "user.welcome",
            "metadata": {"source": "test"},
        })
        assert row["metadata"] == {"source": "test"}
        assert store.select_one("notifications", {"id": row["id"]})["metadata"] == {"source": "test"}


class TestWrites:

    def test_insert_returns_generated_ids(self, store):
        rows = store.insert("vehicles", [{"plate": "KDA 1"}, {"plate": "KDA 2", "model": "Safari Van"}])
        assert len(rows) == 2
        assert all(len(r["id"]) == 36 for r in rows)
        assert rows[0]["status"] == "available"

    def test_update_returns_matched_rows(self, store, factory):
        vehicle = factory.vehicle()
        assert store.update("vehicles", {"status": "on_trip"}, {"id": vehicle.id, "status": "maintenance"}) == []
        [row] = store.update("vehicles", {"status": "on_trip"}, {"id": vehicle.id, "status": "available"})
        assert row["status"] == "on_trip"

    def test_upsert_only_writes_given_keys(self, store, driver_user):
        store.upsert("attendance", {
            "user_id": driver_user.id, "date": TODAY, "check_in": "08:00", "location": "Camp",
        }, ["user_id", "date"])
        row = store.upsert("attendance", {
            "user_id": driver_user.id, "date": TODAY, "check_out": "16:00",
        }, ["user_id", "date"])

        assert row["location"] == "Camp"
        assert row["check_in"] == "08:00"
        assert row["check_out"] == "16:00"
        assert store.count("attendance") == 1

    def test_upsert_needs_conflict_keys(self, store, driver_user):
        with pytest.raises(StoreError, match="missing conflict keys"):
            store.upsert("attendance", {"user_id": driver_user.id}, ["user_id", "date"])

    def test_delete(self, store, factory):
        factory.vehicle(status="maintenance")
        factory.vehicle()
        assert store.delete("vehicles", {"status": "maintenance"}) == 1
        assert store.delete("vehicles", {"status": "maintenance"}) == 0
        assert store.count("vehicles") == 1

    def test_constraint_violation_is_store_error(self, store, factory):
        factory.vehicle("KDA 1")
        with pytest.raises(StoreError):
            store.insert("vehicles", {"plate": "KDA 1"})
        # session is usable again after the rollback
        assert store.count("vehicles") == 1


class TestTransactions:

    def test_rollback_on_exception(self, store):
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.insert("vehicles", {"plate": "KDA 1"})
                raise RuntimeError("abort")
        assert store.count("vehicles") == 0

    def test_commit_on_exit(self, store, db_engine):
        with store.transaction():
            store.insert("vehicles", {"plate": "KDA 1"})
            store.insert("vehicles", {"plate": "KDA 2"})

        other = SqlAlchemyStore(sessionmaker(bind=db_engine)(), feed=ChangeFeed())
        assert other.count("vehicles") == 2

    def test_nested_blocks_commit_once(self, store):
        with pytest.raises(RuntimeError):
            with store.transaction():
                with store.transaction():
                    store.insert("vehicles", {"plate": "KDA 1"})
                raise RuntimeError("outer fails")
        assert store.count("vehicles") == 0


class TestChangeFeed:

    def test_events_after_commit(self, store):
        events = []
        store.subscribe("vehicles", events.append)

        with store.transaction():
            store.insert("vehicles", {"plate": "KDA 1"})
            assert events == []
        assert [(e["table"], e["event"]) for e in events] == [("vehicles", "insert")]
        assert events[0]["rows"][0]["plate"] == "KDA 1"

    def test_no_events_after_rollback(self, store):
        events = []
        store.subscribe("vehicles", events.append)
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.insert("vehicles", {"plate": "KDA 1"})
                raise RuntimeError("abort")
        assert events == []

    def test_event_filter_and_unsubscribe(self, store):
        updates = []
        stop = store.subscribe("vehicles", updates.append, event="update")
        [row] = store.insert("vehicles", {"plate": "KDA 1"})
        store.update("vehicles", {"status": "maintenance"}, {"id": row["id"]})
        assert len(updates) == 1

        stop()
        store.update("vehicles", {"status": "available"}, {"id": row["id"]})
        assert len(updates) == 1

    def test_empty_update_publishes_nothing(self, store):
        events = []
        store.subscribe("vehicles", events.append)
        store.update("vehicles", {"status": "maintenance"}, {"id": "missing"})
        assert events == []

    def test_failing_subscriber_does_not_break_writes(self, store):
        def _boom(change):
            raise RuntimeError("subscriber bug")

        seen = []
        store.subscribe("vehicles", _boom)
        store.subscribe("vehicles", seen.append)
        store.insert("vehicles", {"plate": "KDA 1"})
        assert len(seen) == 1
        assert store.count("vehicles") == 1

    def test_unknown_event(self):
        with pytest.raises(ValueError):
            ChangeFeed().subscribe("vehicles", print, event="truncate")


class TestProcedures:

    def test_mark_notifications_read(self, store, driver_user, admin_user):
        for title in ("One", "Two"):
            store.insert("notifications", {
                "target_user_id": driver_user.id, "title": title, "message": "m", "event": "test",
            })
        store.insert("notifications", {
            "target_user_id": admin_user.id, "title": "Other", "message": "m", "event": "test",
        })

        assert store.call_procedure("mark_notifications_read", user_id=driver_user.id) == 2
        assert store.count("notifications", {"target_user_id": driver_user.id, "read_at": None}) == 0
        assert store.count("notifications", {"target_user_id": admin_user.id, "read_at": None}) == 1

    def test_unknown_procedure(self, store):
        with pytest.raises(StoreError, match="Unknown procedure"):
            store.call_procedure("drop_everything")
