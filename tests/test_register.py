from auth_service.models.refresh_token import RefreshToken
from auth_service.models.user import User

PASSWORD = "Password123!"


def register(client, username="newuser", email="newuser@example.com", password=PASSWORD):
    return client.post(
        "/local/user/register",
        json={"username": username, "email": email, "password": password},
    )


def test_register_creates_unverified_user(client, count_rows, verification_for):
    response = register(client, email="NewUser@Example.com")
    assert response.status_code == 201

    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert data["user"]["username"] == "newuser"
    assert data["user"]["email"] == "newuser@example.com"
    assert data["user"]["is_verified"] is False
    assert "hashed_password" not in data["user"]
    assert "password" not in data["user"]
    assert data["message"].startswith("Registration successful")
    assert data["auto_login"] is False
    assert "access_token" not in data

    assert count_rows(User) == 1
    verification = verification_for(data["user"]["id"])
    assert verification is not None
    assert len(verification.token) == 64


def test_register_rejects_taken_username_or_email(client, test_user):
    response = register(client, username="testuser", email="other@example.com")
    assert response.status_code == 409
    assert response.json() == {
        "success": False,
        "error": "Username or email already exists",
        "error_type": "ConflictError",
    }

    response = register(client, username="otheruser", email="test@example.com")
    assert response.status_code == 409


def test_register_validates_fields(client, count_rows):
    response = register(client, username="ab")
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation failed"
    assert body["details"] == [
        {"field": "username", "message": "Username must be between 3 and 20 characters"}
    ]

    response = register(client, username="bad name!")
    assert response.status_code == 400
    assert response.json()["details"][0]["message"] == "Username must contain only letters and numbers"

    response = register(client, email="not-an-email")
    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "email"

    assert count_rows(User) == 0


def test_register_enforces_password_rules(client):
    cases = {
        "Short1!": "Password must be at least 8 characters long",
        "PASSWORD123!": "Password must contain at least one lowercase letter",
        "password123!": "Password must contain at least one uppercase letter",
        "Password!!!": "Password must contain at least one number",
        "Password123": "Password must contain at least one special character (@$!%*?&)",
    }
    for password, message in cases.items():
        response = register(client, password=password)
        assert response.status_code == 400, password
        assert response.json()["details"] == [{"field": "password", "message": message}]


def test_register_aggregates_field_errors(client):
    response = register(client, username="x", email="nope", password="weak")
    assert response.status_code == 400
    fields = {detail["field"] for detail in response.json()["details"]}
    assert fields == {"username", "email", "password"}


def test_register_with_auto_login(client, restore_settings, count_rows):
    restore_settings.AUTO_LOGIN_AFTER_REGISTER = True

    response = register(client)
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["auto_login"] is True
    assert data["token_type"] == "bearer"
    assert data["access_token"]
    assert data["refresh_token"]
    assert count_rows(RefreshToken, user_id=data["user"]["id"]) == 1


def test_register_is_rate_limited(client):
    for i in range(5):
        response = register(client, username=f"user{i}", email=f"user{i}@example.com")
        assert response.status_code == 201

    response = register(client, username="user5", email="user5@example.com")
    assert response.status_code == 429
    assert response.json()["error"] == "Too many registration attempts, please try again later"
