"""HTTP tests for file imports, call uploads and the public display feed."""

import os

from conftest import auth_header, make_employees, make_user
from pds_api.core.config import settings
from pds_api.models.call_record import CallRecord
from pds_api.models.upload_batch import UploadBatch, UploadStatus
from pds_api.models.user import User

CALLS_CSV = (
    "Agent Name,Total Inbound Calls,Total Outbound Calls\n"
    "Alice,12,3\n"
    "Bob,4,9\n"
)

SLOT = {"report_date": "2024-01-15", "report_time": "09:00"}


def upload_calls(client, user, content, data=SLOT, filename="calls.csv"):
    return client.post(
        "/api/calls/upload",
        headers=auth_header(user),
        files={"file": (filename, content.encode(), "text/csv")},
        data=data,
    )


class TestCallUploadApi:

    def test_upload_and_leaderboard(self, client, db, admin):
        make_employees(db, "Alice", "Bob")

        resp = upload_calls(client, admin, CALLS_CSV)

        assert resp.status_code == 201
        batch = resp.json()["data"]
        assert batch["status"] == UploadStatus.PROCESSED.value
        assert batch["record_count"] == 2

        board = client.get("/api/display/performers").json()["data"]
        assert board["date"] == "2024-01-15"
        assert board["top_performers"][0]["agent_name"] == "Alice"

    def test_unknown_agent_cancels_batch(self, client, db, admin):
        make_employees(db, "Alice")

        resp = upload_calls(client, admin, CALLS_CSV)

        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["agents"] == ["Bob"]
        batch = db.query(UploadBatch).filter(UploadBatch.id == body["upload_id"]).one()
        assert batch.status == UploadStatus.CANCELLED.value
        assert db.query(CallRecord).count() == 0
        assert not os.path.exists(batch.file_path)

    def test_only_csv_accepted(self, client, db, admin):
        resp = upload_calls(client, admin, CALLS_CSV, filename="calls.txt")

        assert resp.status_code == 400
        assert db.query(UploadBatch).count() == 0

    def test_admin_only(self, client, db, hr_user):
        assert upload_calls(client, hr_user, CALLS_CSV).status_code == 403

    def test_cancel_twice(self, client, db, admin):
        make_employees(db, "Alice", "Bob")
        upload_id = upload_calls(client, admin, CALLS_CSV).json()["data"]["id"]

        first = client.delete(f"/api/calls/uploads/{upload_id}", headers=auth_header(admin))
        second = client.delete(f"/api/calls/uploads/{upload_id}", headers=auth_header(admin))

        assert first.json()["data"]["deleted_records"] == 2
        assert second.status_code == 409

    def test_history(self, client, db, admin):
        make_employees(db, "Alice", "Bob")
        upload_calls(client, admin, CALLS_CSV)

        resp = client.get("/api/calls/uploads", headers=auth_header(admin))

        assert resp.json()["data"]["pagination"]["total"] == 1


class TestImportApi:

    def test_user_import_reports_per_row(self, client, db, hr_user):
        content = (
            "First Name,Last Name,Email,Nat ID,Phone Number,Password\n"
            "Tendai,Moyo,tendai@example.com,NAT-1,0771111111,Welcome1!\n"
            "Rudo,Dube,,NAT-2,0772222222,Welcome1!\n"
        )

        resp = client.post(
            "/api/imports/users",
            headers=auth_header(hr_user),
            files={"file": ("users.csv", content.encode(), "text/csv")},
        )

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert (data["success_count"], data["error_count"]) == (1, 1)
        assert db.query(User).filter(User.email == "tendai@example.com").count() == 1
        assert os.listdir(settings.UPLOAD_DIR) in ([], ["csv"])

    def test_requires_hr(self, client, db):
        user = make_user(db)

        resp = client.post(
            "/api/imports/payslips",
            headers=auth_header(user),
            files={"file": ("payslips.csv", b"Period,Nat ID\n", "text/csv")},
        )

        assert resp.status_code == 403


class TestDisplayApi:

    def test_settings_roundtrip(self, client, db, admin):
        client.post("/api/display-settings/initialize", headers=auth_header(admin))

        resp = client.put("/api/display-settings/top_performers_count",
                          headers=auth_header(admin), json={"value": 3})

        assert resp.status_code == 200
        public = client.get("/api/display/settings").json()["data"]
        assert public["top_performers_count"] == 3

    def test_settings_admin_only(self, client, db, hr_user):
        assert client.get("/api/display-settings/", headers=auth_header(hr_user)).status_code == 403

    def test_empty_board(self, client, db):
        resp = client.get("/api/display/metrics")

        assert resp.json()["data"] == {"date": None, "report_time": None, "records": []}


class TestPayslipApi:

    def test_owner_and_staff_access(self, client, db, hr_user):
        owner = make_user(db, nat_id="NAT-1")
        stranger = make_user(db, email="x@example.com", phone_number="0773333333")

        created = client.post("/api/payslips/", headers=auth_header(hr_user),
                              json={"period": "2024-01", "nat_id": "NAT-1", "net_pay": "500.00"})
        assert created.status_code == 201
        payslip_id = created.json()["data"]["id"]

        assert client.get(f"/api/payslips/{payslip_id}", headers=auth_header(owner)).status_code == 200
        assert client.get(f"/api/payslips/{payslip_id}", headers=auth_header(stranger)).status_code == 403
        mine = client.get("/api/payslips/mine", headers=auth_header(owner)).json()["data"]
        assert [p["period"] for p in mine] == ["2024-01"]


class TestVideoApi:

    def test_upload_and_public_feed(self, client, db, admin, storage):
        resp = client.post(
            "/api/videos/",
            headers=auth_header(admin),
            files={"file": ("intro.mp4", b"\x00\x00video", "video/mp4")},
            data={"title": "Intro"},
        )

        assert resp.status_code == 201
        assert len(storage.objects) == 1
        feed = client.get("/api/display/videos").json()["data"]
        assert [v["title"] for v in feed] == ["Intro"]

    def test_rejects_non_video(self, client, db, admin):
        resp = client.post(
            "/api/videos/",
            headers=auth_header(admin),
            files={"file": ("notes.txt", b"hello", "text/plain")},
            data={"title": "Notes"},
        )

        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid file type. Only video files are allowed"
