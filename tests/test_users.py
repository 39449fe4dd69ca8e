import re

from starlette.testclient import TestClient

from app.models import TokenScope

PASSWORD = "pa55word1234"

USERS = "/v1/users"
ACTIVATE = "/v1/users/activated"
LOGIN = "/v1/tokens/authentication"


def _register(client, email="bob@example.com"):
    return client.post(USERS, json={"name": "Bob", "email": email, "password": PASSWORD})


def test_register_creates_inactive_user_and_mails_token(app, supabase, mailer):
    with TestClient(app) as client:
        resp = _register(client)

    assert resp.status_code == 201
    user = resp.json()["user"]
    assert user["name"] == "Bob"
    assert user["email"] == "bob@example.com"
    assert user["activated"] is False
    assert "password_hash" not in user
    assert "version" not in user

    # Registration grants read access only
    links = supabase.tables["users_permissions"]
    assert links == [{"user_id": user["id"], "permission_id": 1}]

    # Leaving the client drains the background mailer
    (msg,) = mailer.outbox
    assert msg["To"] == "bob@example.com"
    assert msg["Subject"] == "Welcome to the Movie Catalog!"
    assert f"your user ID number is {user['id']}" in msg.get_body(("plain",)).get_content()


def test_register_duplicate_email(api_client, make_user):
    make_user("bob@example.com")
    resp = _register(api_client)

    assert resp.status_code == 422
    assert resp.json() == {"errors": {"email": "a user with this email address already exists"}}


def test_register_validates_fields(api_client):
    resp = api_client.post(USERS, json={"name": "", "email": "not-an-email", "password": "short"})

    assert resp.status_code == 422
    assert resp.json()["errors"] == {
        "name": "must be provided",
        "email": "must be a valid email address",
        "password": "must be at least 8 bytes long",
    }


def test_activation_flow(app, supabase, mailer):
    with TestClient(app) as client:
        user_id = _register(client).json()["user"]["id"]
    body = mailer.outbox[0].get_body(("plain",)).get_content()
    token = re.search(r'"token": "([A-Z2-7]{26})"', body).group(1)

    with TestClient(app) as client:
        resp = client.put(ACTIVATE, json={"token": token})
        assert resp.status_code == 200
        assert resp.json()["user"]["activated"] is True

        # Activation tokens are single use
        again = client.put(ACTIVATE, json={"token": token})
        assert again.status_code == 422
        assert again.json() == {"errors": {"token": "invalid or expired activation token"}}

    stored = next(u for u in supabase.tables["users"] if u["id"] == user_id)
    assert stored["version"] == 2
    assert not [t for t in supabase.tables["tokens"] if t["scope"] == TokenScope.activation.value]


def test_activation_token_must_be_26_bytes(api_client):
    resp = api_client.put(ACTIVATE, json={"token": "abc"})

    assert resp.status_code == 422
    assert resp.json() == {"errors": {"token": "must be 26 bytes long"}}


def test_login_issues_authentication_token(api_client, make_user):
    make_user("alice@example.com")
    resp = api_client.post(LOGIN, json={"email": "alice@example.com", "password": PASSWORD})

    assert resp.status_code == 201
    token = resp.json()["authentication_token"]
    assert set(token) == {"token", "expiry"}
    assert re.fullmatch(r"[A-Z2-7]{26}", token["token"])

    # The new token works as a bearer credential
    movies = api_client.get("/v1/movies", headers={"Authorization": f"Bearer {token['token']}"})
    assert movies.status_code == 200


def test_login_with_wrong_password(api_client, make_user):
    make_user("alice@example.com")
    resp = api_client.post(LOGIN, json={"email": "alice@example.com", "password": "wrong-password"})

    assert resp.status_code == 401
    assert resp.json() == {"error": "invalid authentication credentials"}


def test_login_with_unknown_email(api_client):
    resp = api_client.post(LOGIN, json={"email": "nobody@example.com", "password": PASSWORD})
    assert resp.status_code == 401
