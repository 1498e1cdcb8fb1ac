from auth_service.models.email_verification import EmailVerification
from auth_service.models.refresh_token import RefreshToken
from auth_service.models.user import User

PASSWORD = "Password123!"
NEW_PASSWORD = "NewPassword456$"


def change_password(client, token, **overrides):
    body = {
        "token": token,
        "username": "testuser",
        "oldPassword": PASSWORD,
        "newPassword": NEW_PASSWORD,
    }
    body.update(overrides)
    return client.post("/local/user/change-password", json=body)


def remove_user(client, token, **overrides):
    body = {"token": token, "username": "testuser", "password": PASSWORD}
    body.update(overrides)
    return client.request("DELETE", "/local/user/remove-user", json=body)


def test_change_password(client, test_user, login, count_rows):
    tokens = login()

    response = change_password(client, tokens["refresh_token"])
    assert response.status_code == 200
    assert response.json()["data"] == {"message": "Password changed successfully"}

    # Every session ends
    assert count_rows(RefreshToken, user_id=test_user.id) == 0

    response = client.post("/local/user/login", json={"username": "testuser", "password": PASSWORD})
    assert response.status_code == 401
    login(password=NEW_PASSWORD)


def test_change_password_accepts_snake_case_fields(client, test_user, login):
    tokens = login()
    response = client.post(
        "/local/user/change-password",
        json={
            "token": tokens["refresh_token"],
            "email": "test@example.com",
            "old_password": PASSWORD,
            "new_password": NEW_PASSWORD,
        },
    )
    assert response.status_code == 200


def test_change_password_rejects_wrong_old_password(client, test_user, login):
    tokens = login()
    response = change_password(client, tokens["refresh_token"], oldPassword="Wrong123!")
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid old password"


def test_change_password_rejects_weak_new_password(client, test_user, login):
    tokens = login()
    response = change_password(client, tokens["refresh_token"], newPassword="weak")
    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "newPassword"


def test_change_password_token_checks(client, make_user, login, expire_refresh_token, count_rows):
    make_user()
    make_user(username="other", email="other@example.com")
    other_tokens = login(username="other")

    response = change_password(client, "bogus")
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid refresh token"

    response = change_password(client, other_tokens["refresh_token"])
    assert response.status_code == 403
    assert response.json()["error"] == "Token does not match user"

    response = change_password(client, other_tokens["refresh_token"], username="nobody")
    assert response.status_code == 404
    assert response.json()["error"] == "User not found"

    expire_refresh_token(other_tokens["refresh_token"])
    response = change_password(client, other_tokens["refresh_token"], username="other")
    assert response.status_code == 401
    assert response.json()["error"] == "Refresh token expired"
    assert count_rows(RefreshToken) == 0


def test_remove_user_cascades(client, verification_for, count_rows, login):
    response = client.post(
        "/local/user/register",
        json={"username": "testuser", "email": "test@example.com", "password": PASSWORD},
    )
    user_id = response.json()["data"]["user"]["id"]
    token = verification_for(user_id).token
    client.get("/local/email/verify-email", params={"token": token})

    # Leave a pending verification row behind to check the cascade
    client.post(
        "/local/user/register",
        json={"username": "second", "email": "second@example.com", "password": PASSWORD},
    )
    tokens = login()

    response = remove_user(client, tokens["refresh_token"])
    assert response.status_code == 200
    assert response.json()["data"] == {"message": "User account deleted successfully"}

    assert count_rows(User, id=user_id) == 0
    assert count_rows(RefreshToken) == 0
    assert count_rows(User) == 1
    assert count_rows(EmailVerification) == 1


def test_remove_user_requires_password(client, test_user, login, count_rows):
    tokens = login()
    response = remove_user(client, tokens["refresh_token"], password="Wrong123!")
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid password"
    assert count_rows(User) == 1


def test_remove_user_requires_matching_token(client, make_user, login, count_rows):
    make_user()
    make_user(username="other", email="other@example.com")
    other_tokens = login(username="other")

    response = remove_user(client, other_tokens["refresh_token"])
    assert response.status_code == 403
    assert count_rows(User) == 2


def test_remove_unverified_user_drops_pending_verification(client, restore_settings, count_rows):
    restore_settings.AUTO_LOGIN_AFTER_REGISTER = True
    response = client.post(
        "/local/user/register",
        json={"username": "testuser", "email": "test@example.com", "password": PASSWORD},
    )
    data = response.json()["data"]
    user_id = data["user"]["id"]
    assert count_rows(EmailVerification, user_id=user_id) == 1

    response = remove_user(client, data["refresh_token"])
    assert response.status_code == 200

    assert count_rows(User, id=user_id) == 0
    assert count_rows(EmailVerification, user_id=user_id) == 0
    assert count_rows(RefreshToken, user_id=user_id) == 0
