from safari_ops.models import AuditLog


class TestSelfService:

    def test_check_in_and_out(self, client, driver_headers):
        resp = client.post("/api/attendance/check-in", json={"location": "Nairobi depot"}, headers=driver_headers)
        assert resp.status_code == 200
        record = resp.json()
        assert record["status"] in ("present", "late")
        assert record["location"] == "Nairobi depot"

        resp = client.post("/api/attendance/check-out", json={"date": record["date"]}, headers=driver_headers)
        assert resp.status_code == 200
        assert resp.json()["check_out"] is not None

    def test_check_out_without_check_in(self, client, driver_headers):
        resp = client.post("/api/attendance/check-out", json={"date": "2026-03-10"}, headers=driver_headers)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "No check-in found"

    def test_requires_login(self, client):
        assert client.post("/api/attendance/check-in", json={}).status_code == 401


class TestStaffManagement:

    def test_mark_absent_and_list(self, client, admin_headers, driver_user, db_session):
        resp = client.post("/api/attendance/absent", json={
            "user_id": driver_user.id, "date": "2026-03-10",
        }, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["status"] == "absent"

        resp = client.get("/api/attendance?target_date=2026-03-10", headers=admin_headers)
        [row] = resp.json()
        assert row["user_name"] == "Joseph Kamau"
        assert row["user_role"] == "driver"

        logs = db_session.query(AuditLog).filter(AuditLog.entity_type == "attendance").all()
        assert len(logs) == 1

    def test_mark_absent_unknown_user(self, client, admin_headers):
        resp = client.post("/api/attendance/absent", json={"user_id": "ghost", "date": "2026-03-10"},
                           headers=admin_headers)
        assert resp.status_code == 404

    def test_edit_only_touches_given_fields(self, client, admin_headers, driver_user):
        client.put("/api/attendance", json={
            "user_id": driver_user.id, "date": "2026-03-10", "check_in": "07:45", "location": "Camp",
        }, headers=admin_headers)
        resp = client.put("/api/attendance", json={
            "user_id": driver_user.id, "date": "2026-03-10", "check_out": "16:00", "hours_worked": 8.25,
        }, headers=admin_headers)

        assert resp.status_code == 200
        data = resp.json()
        assert data["check_in"] == "07:45"
        assert data["location"] == "Camp"
        assert data["hours_worked"] == 8.25

    def test_edit_rejects_bad_time(self, client, admin_headers, driver_user):
        resp = client.put("/api/attendance", json={
            "user_id": driver_user.id, "date": "2026-03-10", "check_in": "7am",
        }, headers=admin_headers)
        assert resp.status_code == 422

    def test_stats(self, client, admin_headers, admin_user, driver_user):
        client.post("/api/attendance/absent", json={"user_id": driver_user.id, "date": "2026-03-10"},
                    headers=admin_headers)
        client.put("/api/attendance", json={
            "user_id": admin_user.id, "date": "2026-03-10", "check_in": "08:10", "status": "present",
        }, headers=admin_headers)

        resp = client.get("/api/attendance/stats?target_date=2026-03-10", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json() == {
            "total_employees": 2, "present": 1, "late": 0, "absent": 1, "working": 0, "attendance_rate": 50,
        }

    def test_delete(self, client, admin_headers, driver_user):
        record = client.post("/api/attendance/absent", json={"user_id": driver_user.id, "date": "2026-03-10"},
                             headers=admin_headers).json()
        resp = client.delete(f"/api/attendance/{record['id']}", headers=admin_headers)
        assert resp.status_code == 200
        assert client.delete(f"/api/attendance/{record['id']}", headers=admin_headers).status_code == 404

    def test_driver_cannot_manage_staff(self, client, driver_headers):
        resp = client.get("/api/attendance?target_date=2026-03-10", headers=driver_headers)
        assert resp.status_code == 403
