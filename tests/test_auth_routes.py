from datetime import date

from fastapi.testclient import TestClient

import app.main as main
from app.models.user import User
from app.services.notifier import OtpPurpose, get_notifier
from conftest import bearer

ALICE = "alice@example.com"


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "OK"


def test_request_id_is_echoed(client):
    r = client.get("/health", headers={"x-request-id": "abc123"})
    assert r.headers["x-request-id"] == "abc123"
    assert client.get("/health").headers["x-request-id"]


def test_signup_send_otp_never_returns_code(client, notifier):
    r = client.post(
        "/auth/signup/send-otp",
        json={"name": "Alice", "dob": "2000-01-01", "email": ALICE},
    )
    assert r.status_code == 200
    assert set(r.json()) == {"message"}
    email, code, purpose = notifier.sent[-1]
    assert (email, purpose) == (ALICE, OtpPurpose.SIGNUP)
    assert code not in r.text


def test_email_is_normalized_before_storage(client, notifier, db):
    r = client.post(
        "/auth/signup/send-otp",
        json={"name": "  Alice ", "dob": "2000-01-01", "email": "  Alice@Example.COM "},
    )
    assert r.status_code == 200
    user = db.query(User).one()
    assert user.email == ALICE
    assert user.name == "Alice"
    assert notifier.sent[-1][0] == ALICE


def test_signup_validation_errors(client):
    cases = [
        {"name": "Alice", "dob": "2000-01-01", "email": "not-an-email"},
        {"name": "Alice", "dob": "2000-13-40", "email": ALICE},
        {"name": "", "dob": "2000-01-01", "email": ALICE},
        {"dob": "2000-01-01", "email": ALICE},
    ]
    for body in cases:
        r = client.post("/auth/signup/send-otp", json=body)
        assert r.status_code == 400, body
        assert r.json()["error"] == "Validation Error"


def test_signup_underage_rejected(client):
    today = date.today()
    dob = date(today.year - 5, 1, 1).isoformat()
    r = client.post(
        "/auth/signup/send-otp", json={"name": "Kid", "dob": dob, "email": ALICE}
    )
    assert r.status_code == 400
    assert "at least 13" in r.json()["detail"]


def test_verify_rejects_malformed_otp(client):
    r = client.post("/auth/signin/verify-otp", json={"email": ALICE, "otp": "12ab56"})
    assert r.status_code == 400
    assert r.json()["detail"] == "OTP must be a 6-digit number"


def test_signup_verify_sets_refresh_cookie(client, signed_up):
    body = signed_up()

    assert body["user"]["email"] == ALICE
    assert body["user"]["isEmailVerified"] is True
    assert body["user"]["hasGoogleAuth"] is False
    assert body["accessToken"]
    assert "refreshToken" not in body
    assert client.cookies.get("refreshToken")


def test_refresh_cookie_attributes(client, notifier):
    client.post(
        "/auth/signup/send-otp",
        json={"name": "Alice", "dob": "2000-01-01", "email": ALICE},
    )
    r = client.post(
        "/auth/signup/verify-otp",
        json={
            "name": "Alice",
            "dob": "2000-01-01",
            "email": ALICE,
            "otp": notifier.last_code(ALICE),
        },
    )
    cookie = r.headers["set-cookie"].lower()
    assert cookie.startswith("refreshtoken=")
    assert "httponly" in cookie
    assert "samesite=strict" in cookie
    assert "max-age=604800" in cookie


def test_duplicate_signup_conflicts(client, signed_up):
    signed_up()
    r = client.post(
        "/auth/signup/send-otp",
        json={"name": "Alice", "dob": "2000-01-01", "email": ALICE},
    )
    assert r.status_code == 409
    assert r.json()["error"] == "Conflict"


def test_signin_unknown_account(client):
    r = client.post("/auth/signin/send-otp", json={"email": "ghost@example.com"})
    assert r.status_code == 404
    assert "sign up" in r.json()["detail"].lower()


def test_signin_flow_and_me(client, signed_up, notifier):
    signed_up()
    r = client.post("/auth/signin/send-otp", json={"email": ALICE})
    assert r.status_code == 200
    assert notifier.sent[-1][2] is OtpPurpose.SIGNIN

    r = client.post(
        "/auth/signin/verify-otp",
        json={"email": ALICE, "otp": notifier.last_code(ALICE)},
    )
    assert r.status_code == 200
    token = r.json()["accessToken"]

    me = client.get("/auth/me", headers=bearer(token))
    assert me.status_code == 200
    user = me.json()["user"]
    assert user["email"] == ALICE
    assert user["name"] == "Alice"
    assert user["dob"] == "2000-01-01"
    assert "createdAt" in user


def test_legacy_otp_aliases(client, signed_up, notifier):
    signed_up()
    assert client.post("/auth/send-otp", json={"email": ALICE}).status_code == 200
    r = client.post(
        "/auth/verify-otp", json={"email": ALICE, "otp": notifier.last_code(ALICE)}
    )
    assert r.status_code == 200


def test_wrong_and_replayed_codes(client, notifier):
    client.post(
        "/auth/signup/send-otp",
        json={"name": "Alice", "dob": "2000-01-01", "email": ALICE},
    )
    code = notifier.last_code(ALICE)
    wrong = "000000" if code != "000000" else "111111"
    body = {"name": "Alice", "dob": "2000-01-01", "email": ALICE}

    r = client.post("/auth/signup/verify-otp", json={**body, "otp": wrong})
    assert r.status_code == 400
    assert r.json() == {"error": "Authentication Error", "detail": "Invalid OTP"}

    assert client.post("/auth/signup/verify-otp", json={**body, "otp": code}).status_code == 200

    r = client.post("/auth/signup/verify-otp", json={**body, "otp": code})
    assert r.status_code == 400
    assert "No OTP found" in r.json()["detail"]


def test_access_guard_is_uniform(client, signed_up, db):
    token = signed_up()["accessToken"]

    missing = client.get("/auth/me")
    garbage = client.get("/auth/me", headers=bearer("not.a.jwt"))

    db.query(User).delete()
    db.commit()
    deleted = client.get("/auth/me", headers=bearer(token))

    for r in (missing, garbage, deleted):
        assert r.status_code == 401
    assert missing.json() == garbage.json() == deleted.json()


def test_refresh_token_cannot_be_used_as_bearer(client, signed_up):
    signed_up()
    refresh = client.cookies.get("refreshToken")
    assert client.get("/auth/me", headers=bearer(refresh)).status_code == 401


def test_refresh_rotates_and_rejects_replay(client, signed_up):
    signed_up()
    first = client.cookies.get("refreshToken")

    r = client.post("/auth/refresh")
    assert r.status_code == 200
    assert r.json()["accessToken"]
    rotated = client.cookies.get("refreshToken")
    assert rotated and rotated != first

    client.cookies.clear()
    r = client.post("/auth/refresh", json={"refreshToken": first})
    assert r.status_code == 401
    assert r.json()["error"] == "Authentication Error"

    r = client.post("/auth/refresh", json={"refreshToken": rotated})
    assert r.status_code == 200


def test_refresh_requires_a_token(client):
    r = client.post("/auth/refresh")
    assert r.status_code == 400
    assert r.json()["detail"] == "Refresh token is required"


def test_refresh_with_garbage_token(client):
    r = client.post("/auth/refresh", json={"refreshToken": "garbage"})
    assert r.status_code == 401


def test_logout_revokes_refresh(client, signed_up):
    body = signed_up()
    old_refresh = client.cookies.get("refreshToken")

    r = client.post("/auth/logout", headers=bearer(body["accessToken"]))
    assert r.status_code == 200
    assert r.json() == {"message": "Logged out successfully"}
    assert client.cookies.get("refreshToken") is None

    # access tokens are stateless; a second logout still succeeds
    assert client.post("/auth/logout", headers=bearer(body["accessToken"])).status_code == 200

    r = client.post("/auth/refresh", json={"refreshToken": old_refresh})
    assert r.status_code == 401


def test_logout_requires_auth(client):
    assert client.post("/auth/logout").status_code == 401


def test_notifier_failure_is_internal_error(notifier):
    notifier.fail_with = ConnectionError("smtp down")
    main.app.dependency_overrides[get_notifier] = lambda: notifier
    try:
        with TestClient(main.app, raise_server_exceptions=False) as c:
            r = c.post(
                "/auth/signup/send-otp",
                json={"name": "Alice", "dob": "2000-01-01", "email": ALICE},
            )
    finally:
        main.app.dependency_overrides.pop(get_notifier, None)

    assert r.status_code == 500
    assert r.json()["error"] == "Internal Server Error"


def test_verify_signup_rechecks_age(client, notifier, db):
    client.post(
        "/auth/signup/send-otp",
        json={"name": "Alice", "dob": "2000-01-01", "email": ALICE},
    )
    r = client.post(
        "/auth/signup/verify-otp",
        json={
            "name": "Alice",
            "dob": "2020-06-01",
            "email": ALICE,
            "otp": notifier.last_code(ALICE),
        },
    )
    assert r.status_code == 400
    assert r.json()["error"] == "Validation Error"
    assert "at least 13" in r.json()["detail"]

    user = db.query(User).filter(User.email == ALICE).one()
    assert user.dob == date(2000, 1, 1)
    assert user.is_email_verified is False


def test_otp_with_trailing_newline_is_a_validation_error(client):
    r = client.post("/auth/signin/verify-otp", json={"email": ALICE, "otp": "123456\n"})
    assert r.status_code == 400
    assert r.json() == {"error": "Validation Error", "detail": "OTP must be a 6-digit number"}
