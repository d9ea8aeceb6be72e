from conftest import auth_headers, create_admin, register_buyer, sent_code

from ceycanvas.services.email import EmailResult
from ceycanvas.services.otp import OtpServiceError, otp_store

ARTIST = {
    "name": "Nimal Perera",
    "email": "Nimal@Example.com",
    "password": "brushes-and-oils",
    "isArtist": True,
    "bio": "Oil on canvas, mostly coastlines.",
    "phone": "+94 77 123 4567",
    "country": "Sri Lanka",
    "termsAccepted": True,
    "termsVersion": 2,
}


def test_buyer_registration_creates_account(client, mail):
    _, welcome_mail = mail
    data = register_buyer(client, "Kamala Silva", "kamala@example.com")

    assert data["email"] == "kamala@example.com"
    assert data["isArtist"] is False
    assert data["isAdmin"] is False
    assert data["token"]
    welcome_mail.assert_called_once_with("Kamala Silva", "kamala@example.com")


def test_duplicate_registration_is_rejected(client, mail):
    register_buyer(client, "Kamala Silva", "kamala@example.com")

    response = client.post(
        "/api/auth/register",
        json={"name": "Other", "email": "KAMALA@example.com", "password": "secret123"},
    )

    assert response.status_code == 400
    assert response.json()["message"] == "User already exists"


def test_artist_must_accept_terms(client, mail):
    response = client.post("/api/auth/register", json={**ARTIST, "termsAccepted": False})

    assert response.status_code == 400
    assert "terms and conditions" in response.json()["message"]
    mail[0].assert_not_called()


def test_artist_registration_sends_code_and_defers_account(client, mail):
    otp_mail, _ = mail
    response = client.post("/api/auth/register", json=ARTIST)

    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "nimal@example.com"
    assert body["expiresInSeconds"] == 900
    otp_mail.assert_called_once()
    assert otp_mail.call_args.args[:2] == ("Nimal Perera", "nimal@example.com")

    login = client.post(
        "/api/auth/login", json={"email": "nimal@example.com", "password": ARTIST["password"]}
    )
    assert login.status_code == 401


def test_pending_registration_never_stores_plain_password(client, mail):
    client.post("/api/auth/register", json=ARTIST)

    pending = otp_store.get_pending_registration("nimal@example.com")
    assert "password" not in pending
    assert pending["password_hash"] != ARTIST["password"]


def test_artist_verification_creates_account(client, mail):
    otp_mail, welcome_mail = mail
    client.post("/api/auth/register", json=ARTIST)
    code = sent_code(otp_mail)

    response = client.post(
        "/api/auth/verify-artist-otp", json={"email": "nimal@example.com", "otp": f" {code} "}
    )

    assert response.status_code == 201
    data = response.json()
    assert data["isArtist"] is True
    assert data["bio"] == ARTIST["bio"]
    assert data["token"]
    welcome_mail.assert_called_once_with("Nimal Perera", "nimal@example.com")
    assert otp_store.get_pending_registration("nimal@example.com") is None

    login = client.post(
        "/api/auth/login", json={"email": "nimal@example.com", "password": ARTIST["password"]}
    )
    assert login.status_code == 200


def test_wrong_code_is_rejected(client, mail):
    otp_mail, _ = mail
    client.post("/api/auth/register", json=ARTIST)
    code = sent_code(otp_mail)
    wrong = "000000" if code != "000000" else "999999"

    response = client.post(
        "/api/auth/verify-artist-otp", json={"email": "nimal@example.com", "otp": wrong}
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired OTP"
    assert otp_store.get_pending_registration("nimal@example.com") is not None


def test_code_cannot_be_used_twice(client, mail):
    otp_mail, _ = mail
    client.post("/api/auth/register", json=ARTIST)
    payload = {"email": "nimal@example.com", "otp": sent_code(otp_mail)}

    assert client.post("/api/auth/verify-artist-otp", json=payload).status_code == 201
    assert client.post("/api/auth/verify-artist-otp", json=payload).status_code == 400


def test_malformed_code_fails_validation(client, mail):
    response = client.post(
        "/api/auth/verify-artist-otp", json={"email": "nimal@example.com", "otp": "12ab"}
    )

    assert response.status_code == 422
    assert "6-digit" in response.json()["message"]


def test_resend_issues_a_fresh_code(client, mail):
    otp_mail, _ = mail
    client.post("/api/auth/register", json=ARTIST)

    response = client.post("/api/auth/resend-artist-otp", json={"email": "NIMAL@example.com"})

    assert response.status_code == 200
    assert otp_mail.call_count == 2
    verify = client.post(
        "/api/auth/verify-artist-otp",
        json={"email": "nimal@example.com", "otp": sent_code(otp_mail)},
    )
    assert verify.status_code == 201


def test_resend_without_pending_registration(client, mail):
    response = client.post("/api/auth/resend-artist-otp", json={"email": "ghost@example.com"})

    assert response.status_code == 404


def test_failed_email_discards_the_code(client, mail):
    otp_mail, _ = mail
    otp_mail.return_value = EmailResult(success=False, error="SMTP down")

    response = client.post("/api/auth/register", json=ARTIST)

    assert response.status_code == 502
    assert otp_store.get_pending_registration("nimal@example.com") is None


def test_failed_resend_keeps_the_pending_registration(client, mail):
    otp_mail, _ = mail
    client.post("/api/auth/register", json=ARTIST)
    otp_mail.return_value = EmailResult(success=False, error="SMTP down")

    failed = client.post("/api/auth/resend-artist-otp", json={"email": "nimal@example.com"})

    assert failed.status_code == 502
    assert otp_store.get_pending_registration("nimal@example.com")["name"] == "Nimal Perera"

    otp_mail.return_value = EmailResult(success=True, message_id="<otp@test>")
    retry = client.post("/api/auth/resend-artist-otp", json={"email": "nimal@example.com"})
    verify = client.post(
        "/api/auth/verify-artist-otp",
        json={"email": "nimal@example.com", "otp": sent_code(otp_mail)},
    )

    assert retry.status_code == 200
    assert verify.status_code == 201


def test_resend_reports_store_failure(client, mail, monkeypatch):
    def unavailable(email):
        raise OtpServiceError("Failed to read pending registration")

    monkeypatch.setattr(otp_store, "get_pending_registration", unavailable)

    response = client.post("/api/auth/resend-artist-otp", json={"email": "nimal@example.com"})

    assert response.status_code == 500
    assert response.json() == {"message": "Failed to read pending registration"}


def test_otp_remaining(client, mail):
    client.post("/api/auth/register", json=ARTIST)

    pending = client.get("/api/auth/otp-remaining", params={"email": "nimal@example.com"})
    unknown = client.get("/api/auth/otp-remaining", params={"email": "ghost@example.com"})

    assert 0 < pending.json()["remainingSeconds"] <= 900
    assert unknown.json() == {"email": "ghost@example.com", "remainingSeconds": 0}


def test_login_with_bad_password(client, mail):
    register_buyer(client, "Kamala Silva", "kamala@example.com")

    response = client.post(
        "/api/auth/login", json={"email": "kamala@example.com", "password": "wrong-one"}
    )

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid email or password"


def test_profile_requires_token(client):
    assert client.get("/api/auth/profile").status_code == 401
    bad = client.get("/api/auth/profile", headers=auth_headers("garbage"))
    assert bad.status_code == 401


def test_profile_read_and_update(client, mail):
    token = register_buyer(client, "Kamala Silva", "kamala@example.com")["token"]

    profile = client.get("/api/auth/profile", headers=auth_headers(token))
    assert profile.json()["name"] == "Kamala Silva"

    updated = client.put(
        "/api/auth/profile",
        headers=auth_headers(token),
        json={"name": "Kamala S.", "profileImage": "/uploads/kamala.png", "password": "new-secret"},
    )
    assert updated.status_code == 200
    assert updated.json()["name"] == "Kamala S."
    assert updated.json()["profileImage"] == "/uploads/kamala.png"

    login = client.post(
        "/api/auth/login", json={"email": "kamala@example.com", "password": "new-secret"}
    )
    assert login.status_code == 200


def test_profile_email_must_stay_unique(client, mail):
    register_buyer(client, "Kamala Silva", "kamala@example.com")
    token = register_buyer(client, "Ruwan Fernando", "ruwan@example.com")["token"]

    response = client.put(
        "/api/auth/profile", headers=auth_headers(token), json={"email": "kamala@example.com"}
    )

    assert response.status_code == 400


def test_user_list_is_admin_only(client, mail):
    token = register_buyer(client, "Kamala Silva", "kamala@example.com")["token"]
    assert client.get("/api/auth/users", headers=auth_headers(token)).status_code == 403

    create_admin()
    admin_login = client.post(
        "/api/auth/login", json={"email": "admin@ceycanvas.com", "password": "admin-pass"}
    )
    admin_token = admin_login.json()["token"]
    users = client.get("/api/auth/users", headers=auth_headers(admin_token))

    assert users.status_code == 200
    assert {u["email"] for u in users.json()} == {"kamala@example.com", "admin@ceycanvas.com"}


def test_support_user(client, mail):
    token = register_buyer(client, "Kamala Silva", "kamala@example.com")["token"]
    assert client.get("/api/auth/support", headers=auth_headers(token)).status_code == 404

    admin = create_admin()
    support = client.get("/api/auth/support", headers=auth_headers(token))

    assert support.status_code == 200
    assert support.json() == {"id": admin.id, "name": "Support Admin"}


def test_public_user_card(client, mail):
    kamala = register_buyer(client, "Kamala Silva", "kamala@example.com")
    token = register_buyer(client, "Ruwan Fernando", "ruwan@example.com")["token"]

    card = client.get(f"/api/auth/users/{kamala['id']}", headers=auth_headers(token))
    missing = client.get("/api/auth/users/9999", headers=auth_headers(token))

    assert card.json() == {"id": kamala["id"], "name": "Kamala Silva", "isArtist": False}
    assert missing.status_code == 404
