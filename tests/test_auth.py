import pytest

from medibook.core.config import settings

# Test data
test_user_data = {
    "username": "Test User",
    "email": "Test@Example.com",
    "password": "TestPassword123",
    "role": "patient",
}

test_login_data = {
    "email": "test@example.com",
    "password": "TestPassword123"
}

test_doctor_data = {
    "username": "Dr Who",
    "email": "who@example.com",
    "password": "TestPassword123",
    "role": "doctor",
    "specialization": "Neurology",
    "license_number": "LIC-42",
    "qualifications": ["MBBS", "MD"],
    "experience": 10,
    "consultation_fee": 750,
}

def login(client, email="test@example.com", password="TestPassword123"):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})

class TestRegistration:

    def test_register_user(self, client, test_db):
        """Test user registration."""
        response = client.post("/api/v1/auth/register", json=test_user_data)
        assert response.status_code == 201

        data = response.json()
        assert data["email"] == "test@example.com"
        assert data["role"] == "patient"
        assert "password" not in data
        assert "password_hash" not in data

    def test_register_duplicate_email(self, client, test_db):
        """Registration is case-insensitive on email."""
        client.post("/api/v1/auth/register", json=test_user_data)

        duplicate = dict(test_user_data, email="TEST@example.com")
        response = client.post("/api/v1/auth/register", json=duplicate)
        assert response.status_code == 400
        assert "already registered" in response.json()["detail"]

    def test_register_invalid_password(self, client, test_db):
        """Test registration with invalid password."""
        invalid_data = dict(test_user_data, password="weak")

        response = client.post("/api/v1/auth/register", json=invalid_data)
        assert response.status_code == 422

    def test_admin_cannot_register(self, client, test_db):
        response = client.post("/api/v1/auth/register", json=dict(test_user_data, role="admin"))
        assert response.status_code == 403

    def test_register_doctor_creates_unverified_profile(self, client, test_db):
        response = client.post("/api/v1/auth/register", json=test_doctor_data)
        assert response.status_code == 201

        tokens = login(client, "who@example.com").json()
        assert tokens["doctor_info"]["is_verified"] is False
        assert tokens["doctor_info"]["specialization"] == "Neurology"

    def test_register_doctor_requires_license(self, client, test_db):
        payload = dict(test_doctor_data)
        del payload["license_number"]

        response = client.post("/api/v1/auth/register", json=payload)
        assert response.status_code == 400

        # No half-registered account is left behind
        assert login(client, "who@example.com").status_code == 401

    def test_register_doctor_duplicate_license(self, client, test_db):
        client.post("/api/v1/auth/register", json=test_doctor_data)

        response = client.post(
            "/api/v1/auth/register",
            json=dict(test_doctor_data, email="other@example.com")
        )
        assert response.status_code == 400
        assert "License" in response.json()["detail"]

    def test_register_doctor_fee_below_minimum(self, client, test_db):
        response = client.post(
            "/api/v1/auth/register",
            json=dict(test_doctor_data, consultation_fee=100)
        )
        assert response.status_code == 400

    def test_register_rate_limited(self, client, test_db, monkeypatch):
        monkeypatch.setattr(settings, "RATE_LIMIT_REQUESTS", 2)

        for i in range(2):
            payload = dict(test_user_data, email=f"user{i}@example.com")
            assert client.post("/api/v1/auth/register", json=payload).status_code == 201

        response = client.post(
            "/api/v1/auth/register",
            json=dict(test_user_data, email="user3@example.com")
        )
        assert response.status_code == 429

class TestAuthentication:

    def test_login_success(self, client, test_db):
        """Test successful login."""
        client.post("/api/v1/auth/register", json=test_user_data)

        response = login(client)
        assert response.status_code == 200

        data = response.json()
        assert "access_token" in data
        assert "refresh_token" in data
        assert data["token_type"] == "bearer"
        assert data["user"]["email"] == "test@example.com"
        assert data["doctor_info"] is None

    def test_login_invalid_credentials(self, client, test_db):
        """Test login with invalid credentials."""
        response = login(client, "nonexistent@example.com", "wrongpassword")
        assert response.status_code == 401

    def test_login_wrong_password(self, client, test_db):
        """Test login with wrong password."""
        client.post("/api/v1/auth/register", json=test_user_data)

        response = login(client, password="wrongpassword")
        assert response.status_code == 401

    def test_account_lockout(self, client, test_db):
        client.post("/api/v1/auth/register", json=test_user_data)

        for _ in range(settings.MAX_FAILED_LOGINS):
            assert login(client, password="wrongpassword").status_code == 401

        # Even the right password is refused while locked
        assert login(client).status_code == 423

    def test_get_current_user(self, client, test_db):
        """Test getting current user info."""
        client.post("/api/v1/auth/register", json=test_user_data)
        token = login(client).json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}

        response = client.get("/api/v1/auth/me", headers=headers)
        assert response.status_code == 200

        data = response.json()
        assert data["user"]["email"] == "test@example.com"
        assert data["doctor_info"] is None

    def test_get_current_user_invalid_token(self, client, test_db):
        """Test get current user with invalid token."""
        headers = {"Authorization": "Bearer invalid_token"}

        response = client.get("/api/v1/auth/me", headers=headers)
        assert response.status_code == 401

    def test_refresh_token_cannot_be_used_as_access_token(self, client, test_db):
        client.post("/api/v1/auth/register", json=test_user_data)
        refresh_token = login(client).json()["refresh_token"]

        response = client.get(
            "/api/v1/auth/me",
            headers={"Authorization": f"Bearer {refresh_token}"}
        )
        assert response.status_code == 401

    def test_refresh_token(self, client, test_db):
        """Test token refresh."""
        client.post("/api/v1/auth/register", json=test_user_data)
        refresh_token = login(client).json()["refresh_token"]

        response = client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        assert response.status_code == 200

        data = response.json()
        assert "access_token" in data
        assert data["refresh_token"] != refresh_token

        # The old refresh token was rotated out
        reused = client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        assert reused.status_code == 401

    def test_refresh_invalid_token(self, client, test_db):
        """Test refresh with invalid token."""
        response = client.post("/api/v1/auth/refresh", json={"refresh_token": "invalid_token"})
        assert response.status_code == 401

    def test_logout(self, client, test_db):
        """Logout revokes the refresh token."""
        client.post("/api/v1/auth/register", json=test_user_data)
        refresh_token = login(client).json()["refresh_token"]

        response = client.post("/api/v1/auth/logout", json={"refresh_token": refresh_token})
        assert response.status_code == 200

        response = client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        assert response.status_code == 401

    def test_change_password(self, client, test_db):
        """Test password change."""
        client.post("/api/v1/auth/register", json=test_user_data)
        token = login(client).json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}

        password_data = {
            "current_password": "TestPassword123",
            "new_password": "NewPassword123"
        }

        response = client.post("/api/v1/auth/change-password", json=password_data, headers=headers)
        assert response.status_code == 200
        assert login(client, password="NewPassword123").status_code == 200

    def test_change_password_wrong_current(self, client, test_db):
        """Test password change with wrong current password."""
        client.post("/api/v1/auth/register", json=test_user_data)
        token = login(client).json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}

        password_data = {
            "current_password": "WrongPassword",
            "new_password": "NewPassword123"
        }

        response = client.post("/api/v1/auth/change-password", json=password_data, headers=headers)
        assert response.status_code == 400

    def test_verify_token(self, client, test_db):
        """Test token verification."""
        created = client.post("/api/v1/auth/register", json=test_user_data).json()
        token = login(client).json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}

        response = client.post("/api/v1/auth/verify-token", headers=headers)
        assert response.status_code == 200

        data = response.json()
        assert data["valid"] is True
        assert data["user_id"] == created["id"]
        assert data["role"] == "patient"

if __name__ == "__main__":
    pytest.main([__file__])
