from medibook.core.security import UserRole, verify_password
from medibook.models.user import User
from medibook.services.admin_seed import ensure_admin

from tests.conftest import auth_headers, create_doctor, create_user

class TestAdminSeeding:

    def test_skipped_without_configuration(self, db):
        assert ensure_admin(db, None, None) is None
        assert ensure_admin(db, "admin@example.com", "") is None
        assert db.query(User).count() == 0

    def test_creates_admin(self, db):
        admin = ensure_admin(db, "  Admin@Example.com ", "AdminPass123")

        assert admin.email == "admin@example.com"
        assert admin.role == UserRole.ADMIN
        assert admin.username == "System Admin"
        assert admin.is_active
        assert verify_password("AdminPass123", admin.password_hash)

    def test_idempotent(self, db):
        first = ensure_admin(db, "admin@example.com", "AdminPass123")
        original_hash = first.password_hash

        second = ensure_admin(db, "admin@example.com", "AdminPass123")

        assert second.id == first.id
        assert second.password_hash == original_hash
        assert db.query(User).filter(User.role == UserRole.ADMIN).count() == 1

    def test_corrects_existing_account(self, db):
        existing = create_user(db, "admin@example.com", role=UserRole.PATIENT, is_active=False)

        admin = ensure_admin(db, "admin@example.com", "NewAdminPass1")

        assert admin.id == existing.id
        assert admin.role == UserRole.ADMIN
        assert admin.is_active
        assert verify_password("NewAdminPass1", admin.password_hash)

    def test_retires_previous_admin(self, db):
        old = ensure_admin(db, "old-admin@example.com", "AdminPass123")

        ensure_admin(db, "new-admin@example.com", "AdminPass123")

        db.refresh(old)
        assert old.is_active is False
        active_admins = db.query(User).filter(
            User.role == UserRole.ADMIN, User.is_active.is_(True)
        ).all()
        assert [u.email for u in active_admins] == ["new-admin@example.com"]

class TestDoctorVerification:

    def test_pending_doctors_admin_only(self, client, db, admin, patient):
        create_doctor(db, "pending@example.com", verified=False)
        create_doctor(db, "done@example.com", verified=True)

        response = client.get("/api/v1/admin/pending-doctors", headers=auth_headers(admin))
        assert response.status_code == 200
        assert [d["email"] for d in response.json()] == ["pending@example.com"]

        forbidden = client.get("/api/v1/admin/pending-doctors", headers=auth_headers(patient))
        assert forbidden.status_code == 403

    def test_approve_makes_doctor_public(self, client, db, admin):
        _, profile = create_doctor(db, "pending@example.com", verified=False)

        assert client.get(f"/api/v1/doctors/{profile.id}").status_code == 404

        response = client.put(
            f"/api/v1/admin/verify-doctor/{profile.id}",
            json={"status": "approved"},
            headers=auth_headers(admin)
        )
        assert response.status_code == 200
        assert response.json()["doctor"]["is_verified"] is True

        public = client.get(f"/api/v1/doctors/{profile.id}")
        assert public.status_code == 200
        assert public.json()["verified_at"] is not None

    def test_reject_leaves_profile_unverified(self, client, db, admin):
        _, profile = create_doctor(db, "pending@example.com", verified=False)

        response = client.put(
            f"/api/v1/admin/verify-doctor/{profile.id}",
            json={"status": "rejected"},
            headers=auth_headers(admin)
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Doctor verification rejected"
        assert client.get(f"/api/v1/doctors/{profile.id}").status_code == 404

    def test_invalid_decision(self, client, db, admin):
        _, profile = create_doctor(db, "pending@example.com", verified=False)

        response = client.put(
            f"/api/v1/admin/verify-doctor/{profile.id}",
            json={"status": "maybe"},
            headers=auth_headers(admin)
        )
        assert response.status_code == 400

    def test_verify_unknown_doctor(self, client, admin):
        response = client.put(
            "/api/v1/admin/verify-doctor/999",
            json={"status": "approved"},
            headers=auth_headers(admin)
        )
        assert response.status_code == 404

class TestUserAdministration:

    def test_list_users_by_role(self, client, admin, patient, doctor):
        response = client.get(
            "/api/v1/admin/users",
            params={"role": "doctor"},
            headers=auth_headers(admin)
        )
        assert response.status_code == 200
        assert [u["email"] for u in response.json()] == ["doctor.d@example.com"]

    def test_disable_and_enable_user(self, client, admin, patient):
        url = f"/api/v1/admin/users/{patient.id}/status"
        patient_headers = auth_headers(patient)

        response = client.put(url, json={"is_active": False}, headers=auth_headers(admin))
        assert response.status_code == 200
        assert response.json()["user"]["is_active"] is False
        assert client.get("/api/v1/auth/me", headers=patient_headers).status_code == 403

        client.put(url, json={"is_active": True}, headers=auth_headers(admin))
        assert client.get("/api/v1/auth/me", headers=patient_headers).status_code == 200

    def test_admin_status_cannot_change(self, client, admin):
        response = client.put(
            f"/api/v1/admin/users/{admin.id}/status",
            json={"is_active": False},
            headers=auth_headers(admin)
        )
        assert response.status_code == 403

class TestDoctorDirectory:

    def test_search_only_verified_and_available(self, client, db):
        create_doctor(db, "heart@example.com", specialization="Cardiology", username="Dr Heart")
        create_doctor(db, "skin@example.com", specialization="Dermatology", username="Dr Skin")
        create_doctor(db, "new@example.com", specialization="Cardiology", verified=False)

        response = client.get("/api/v1/doctors/search", params={"specialization": "cardio"})
        assert response.status_code == 200
        assert [d["email"] for d in response.json()["doctors"]] == ["heart@example.com"]

        by_name = client.get("/api/v1/doctors/search", params={"name": "skin"})
        assert by_name.json()["count"] == 1
        assert by_name.json()["doctors"][0]["license_number"] is None

    def test_availability_update_hides_busy_doctor(self, client, doctor):
        doctor_user, profile = doctor

        response = client.put(
            "/api/v1/doctors/me/availability",
            json={"status": "On Leave", "availability": {"monday": [{"start": "09:00", "end": "12:00"}]}},
            headers=auth_headers(doctor_user)
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "On Leave"
        assert data["availability"]["monday"] == [{"start": "09:00", "end": "12:00"}]
        assert data["availability"]["friday"] == []

        search = client.get("/api/v1/doctors/search")
        assert search.json()["count"] == 0

    def test_availability_rejects_unknown_status(self, client, doctor):
        doctor_user, _ = doctor
        response = client.put(
            "/api/v1/doctors/me/availability",
            json={"status": "Sleeping"},
            headers=auth_headers(doctor_user)
        )
        assert response.status_code == 422

    def test_own_profile(self, client, doctor, patient):
        doctor_user, profile = doctor

        response = client.get("/api/v1/doctors/me", headers=auth_headers(doctor_user))
        assert response.status_code == 200
        assert response.json()["id"] == profile.id
        assert response.json()["license_number"] == profile.license_number

        assert client.get("/api/v1/doctors/me", headers=auth_headers(patient)).status_code == 403
