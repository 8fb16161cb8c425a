"""
Unit tests for API v1 routes.

Routes run against in-memory adapters through dependency overrides
(see the `app` fixture in tests/conftest.py). Background tasks run after
each TestClient response, so queued notifications are already drained
when a request returns.
"""

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from nominations.adapters.outbox import InMemoryOutbox
from nominations.adapters.repository.memory import (
    InMemoryHouseholdRepository,
    InMemoryUserRepository,
)
from nominations.domain.models import User
from nominations.domain.pagination import MAX_PAGE
from nominations.domain.ports import NotificationTask, TaskKind
from tests.factories import ADMIN_ADDRESS, STRONG_PASSWORD, make_household

ADMIN_AUTH = (ADMIN_ADDRESS, STRONG_PASSWORD)


def register_payload(**overrides) -> dict:
    payload = {
        "email": "ada@example.com",
        "raw_password": STRONG_PASSWORD,
        "name_first": "Ada",
        "name_last": "Lovelace",
        "rank": "Sergeant",
    }
    payload.update(overrides)
    return payload


def sent_verification(mailer: Mock, email: str) -> dict:
    """Context of the last verify-email message sent to email."""
    for call in reversed(mailer.send.call_args_list):
        template, to, context = call.args
        if template == "verify-email" and to == email:
            return context
    raise AssertionError(f"no verification email sent to {email}")


def make_active_user(client: TestClient, mailer: Mock, email: str) -> int:
    """Register, confirm and approve a nominator through the API."""
    assert client.post("/v1/auth/register", json=register_payload(email=email)).status_code == 201
    context = sent_verification(mailer, email)
    user_id = context["user"].id
    confirmed = client.post(
        "/v1/auth/confirm_email",
        json={"user_id": user_id, "confirmation_code": context["confirmation_code"]},
    )
    assert confirmed.status_code == 200
    assert client.post(f"/v1/users/{user_id}/approve", auth=ADMIN_AUTH).status_code == 200
    return user_id


class TestRegisterEndpoint:
    """Tests for POST /v1/auth/register."""

    def test_register_returns_201(self, client: TestClient) -> None:
        response = client.post("/v1/auth/register", json=register_payload())

        assert response.status_code == 201
        assert response.json() == {
            "message": "Check your email to continue the registration process",
            "email": "ada@example.com",
        }

    def test_register_sends_verification_in_background(
        self,
        client: TestClient,
        mailer: Mock,
        outbox: InMemoryOutbox,
        user_repository: InMemoryUserRepository,
    ) -> None:
        client.post("/v1/auth/register", json=register_payload())

        context = sent_verification(mailer, "ada@example.com")
        assert context["confirm_email_url"] == "http://testserver/auth/confirm_email"
        assert outbox.pending == []
        assert user_repository.find_by_email("ada@example.com").confirmation_email is True

    def test_duplicate_email_returns_409(self, client: TestClient) -> None:
        client.post("/v1/auth/register", json=register_payload())

        response = client.post("/v1/auth/register", json=register_payload())

        assert response.status_code == 409
        assert response.json() == {
            "detail": "An account with that email already exists",
            "field": "email",
        }

    def test_weak_password_returns_400(self, client: TestClient) -> None:
        response = client.post("/v1/auth/register", json=register_payload(raw_password="short"))

        assert response.status_code == 400
        assert response.json()["field"] == "password"
        assert response.json()["detail"].startswith("Invalid password")

    def test_overlong_password_returns_400(
        self, client: TestClient, user_repository: InMemoryUserRepository
    ) -> None:
        """Passwords past bcrypt's 72-byte input are a field error, not a crash."""
        response = client.post(
            "/v1/auth/register", json=register_payload(raw_password="Aa1" + "x" * 80)
        )

        assert response.status_code == 400
        assert response.json() == {
            "detail": "Invalid password: must be at most 72 bytes",
            "field": "password",
        }
        assert user_repository.all() == []

    def test_invalid_email_returns_422(self, client: TestClient) -> None:
        response = client.post("/v1/auth/register", json=register_payload(email="nope"))
        assert response.status_code == 422

    def test_missing_name_returns_422(self, client: TestClient) -> None:
        payload = register_payload()
        del payload["name_first"]
        assert client.post("/v1/auth/register", json=payload).status_code == 422


class TestConfirmEmailEndpoint:
    """Tests for POST /v1/auth/confirm_email."""

    def test_confirm_notifies_admin(self, client: TestClient, mailer: Mock) -> None:
        client.post("/v1/auth/register", json=register_payload())
        context = sent_verification(mailer, "ada@example.com")

        response = client.post(
            "/v1/auth/confirm_email",
            json={
                "user_id": context["user"].id,
                "confirmation_code": context["confirmation_code"],
            },
        )

        assert response.status_code == 200
        assert response.json() == {"message": "Email confirmed; awaiting administrator approval"}
        template, to, approval_context = mailer.send.call_args.args
        assert (template, to) == ("admin-approval", ADMIN_ADDRESS)
        assert approval_context["url"] == "http://testserver/users/needing/approval"

    def test_wrong_code_returns_400(self, client: TestClient, mailer: Mock) -> None:
        client.post("/v1/auth/register", json=register_payload())
        user_id = sent_verification(mailer, "ada@example.com")["user"].id

        response = client.post(
            "/v1/auth/confirm_email",
            json={"user_id": user_id, "confirmation_code": "wrong"},
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "confirmation code does not match"}

    def test_unknown_user_looks_like_wrong_code(self, client: TestClient) -> None:
        response = client.post(
            "/v1/auth/confirm_email",
            json={"user_id": 999, "confirmation_code": "anything"},
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "confirmation code does not match"}

    def test_confirm_validates_user_id(self, client: TestClient) -> None:
        response = client.post(
            "/v1/auth/confirm_email",
            json={"user_id": "abc", "confirmation_code": "x"},
        )
        assert response.status_code == 422


class TestAuthentication:
    """Tests for HTTP BASIC AUTH on protected routes."""

    def test_me_requires_credentials(self, client: TestClient) -> None:
        response = client.get("/v1/auth/me")
        assert response.status_code == 401

    def test_me_rejects_wrong_password(self, client: TestClient, admin: User) -> None:
        response = client.get("/v1/auth/me", auth=(ADMIN_ADDRESS, "Wr0ngpass"))

        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid credentials"}
        assert response.headers["WWW-Authenticate"] == "Basic"

    def test_me_rejects_overlong_password(self, client: TestClient, admin: User) -> None:
        response = client.get("/v1/auth/me", auth=(ADMIN_ADDRESS, "Aa1" + "x" * 80))

        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid credentials"}

    def test_overlong_password_for_unknown_email(self, client: TestClient) -> None:
        response = client.get("/v1/auth/me", auth=("nobody@example.com", "Aa1" + "x" * 80))
        assert response.status_code == 401

    def test_me_rejects_unapproved_user(self, client: TestClient) -> None:
        client.post("/v1/auth/register", json=register_payload())

        response = client.get("/v1/auth/me", auth=("ada@example.com", STRONG_PASSWORD))

        assert response.status_code == 401

    def test_me_returns_current_user(self, client: TestClient, admin: User) -> None:
        response = client.get("/v1/auth/me", auth=ADMIN_AUTH)

        assert response.status_code == 200
        body = response.json()
        assert body["email"] == ADMIN_ADDRESS
        assert body["role"] == "admin"
        assert "password" not in body


class TestApproveEndpoint:
    """Tests for POST /v1/users/{user_id}/approve."""

    def test_approve_activates_user(
        self, client: TestClient, admin: User, user_repository: InMemoryUserRepository
    ) -> None:
        client.post("/v1/auth/register", json=register_payload())
        user = user_repository.find_by_email("ada@example.com")

        response = client.post(f"/v1/users/{user.id}/approve", auth=ADMIN_AUTH)

        assert response.status_code == 200
        assert response.json() == {"message": "User approved"}
        stored = user_repository.find_by_id(user.id)
        assert stored.approved and stored.active

    def test_approve_unknown_user_returns_404(self, client: TestClient, admin: User) -> None:
        response = client.post("/v1/users/999/approve", auth=ADMIN_AUTH)

        assert response.status_code == 404
        assert response.json() == {"detail": "unknown user"}

    def test_nominator_cannot_approve(
        self, client: TestClient, admin: User, mailer: Mock
    ) -> None:
        make_active_user(client, mailer, "ada@example.com")

        response = client.post(
            f"/v1/users/{admin.id}/approve", auth=("ada@example.com", STRONG_PASSWORD)
        )

        assert response.status_code == 403
        assert response.json() == {"detail": "Administrator access required"}


class TestUserTables:
    """Tests for GET /v1/users and GET /v1/users/needing/approval."""

    def test_users_are_paginated(self, client: TestClient, admin: User) -> None:
        for i in range(1, 5):
            client.post("/v1/auth/register", json=register_payload(email=f"user{i}@example.com"))

        response = client.get("/v1/users", params={"page": "2"}, auth=ADMIN_AUTH)

        body = response.json()
        assert response.status_code == 200
        assert body["totalSize"] == 5
        assert body["per_page"] == 2
        assert body["page"] == 2
        assert body["last_page"] == 3
        assert (body["from"], body["to"]) == (3, 4)
        assert body["next_page_url"] == "http://testserver/v1/users?page=3"
        assert body["prev_page_url"] == "http://testserver/v1/users?page=1"
        assert [u["email"] for u in body["items"]] == ["user2@example.com", "user3@example.com"]

    def test_huge_page_is_capped(self, client: TestClient, admin: User) -> None:
        response = client.get(
            "/v1/users", params={"page": "99999999999999999999"}, auth=ADMIN_AUTH
        )

        body = response.json()
        assert response.status_code == 200
        assert body["page"] == MAX_PAGE
        assert body["items"] == []
        assert body["prev_page_url"] == "http://testserver/v1/users?page=1"

    def test_invalid_page_falls_back_to_first(self, client: TestClient, admin: User) -> None:
        response = client.get("/v1/users", params={"page": "abc"}, auth=ADMIN_AUTH)

        assert response.status_code == 200
        assert response.json()["page"] == 1
        assert response.json()["prev_page_url"] is None

    def test_needing_approval_lists_verified_users_only(
        self, client: TestClient, admin: User, mailer: Mock
    ) -> None:
        client.post("/v1/auth/register", json=register_payload(email="pending@example.com"))
        client.post("/v1/auth/register", json=register_payload(email="verified@example.com"))
        context = sent_verification(mailer, "verified@example.com")
        client.post(
            "/v1/auth/confirm_email",
            json={
                "user_id": context["user"].id,
                "confirmation_code": context["confirmation_code"],
            },
        )

        response = client.get("/v1/users/needing/approval", auth=ADMIN_AUTH)

        assert response.status_code == 200
        assert [u["email"] for u in response.json()["items"]] == ["verified@example.com"]

    def test_tables_require_admin(self, client: TestClient, admin: User, mailer: Mock) -> None:
        make_active_user(client, mailer, "ada@example.com")
        auth = ("ada@example.com", STRONG_PASSWORD)

        assert client.get("/v1/users", auth=auth).status_code == 403
        assert client.get("/v1/users/needing/approval", auth=auth).status_code == 403


class TestHouseholdTable:
    """Tests for GET /v1/households."""

    @pytest.fixture
    def nominator_id(
        self,
        client: TestClient,
        admin: User,
        mailer: Mock,
        household_repository: InMemoryHouseholdRepository,
    ) -> int:
        user_id = make_active_user(client, mailer, "ada@example.com")
        household_repository.add(make_household(1, nominator_id=user_id))
        household_repository.add(make_household(2, nominator_id=admin.id))
        household_repository.add(make_household(3, nominator_id=user_id))
        return user_id

    def test_nominator_sees_own_households(self, client: TestClient, nominator_id: int) -> None:
        response = client.get("/v1/households", auth=("ada@example.com", STRONG_PASSWORD))

        body = response.json()
        assert response.status_code == 200
        assert body["totalSize"] == 2
        assert [h["id"] for h in body["items"]] == [1, 3]
        assert all(h["nominator_id"] == nominator_id for h in body["items"])

    def test_admin_sees_every_household(self, client: TestClient, nominator_id: int) -> None:
        response = client.get("/v1/households", auth=ADMIN_AUTH)

        body = response.json()
        assert body["totalSize"] == 3
        assert body["last_page"] == 2
        assert [h["id"] for h in body["items"]] == [1, 2]
        assert body["items"][0]["name_full"] == "First1 Last1"
        assert body["items"][0]["phone_numbers"] == ""
        assert "last4ssn" not in body["items"][0]

    def test_households_require_login(self, client: TestClient) -> None:
        assert client.get("/v1/households").status_code == 401


class TestNotificationRetryEndpoint:
    """Tests for POST /v1/notifications/retry."""

    def test_redelivers_dead_letters(
        self,
        client: TestClient,
        admin: User,
        mailer: Mock,
        outbox: InMemoryOutbox,
        user_repository: InMemoryUserRepository,
    ) -> None:
        mailer.send.side_effect = OSError("relay down")
        client.post("/v1/auth/register", json=register_payload())
        assert len(outbox.dead_letters) == 1
        mailer.send.side_effect = None

        response = client.post("/v1/notifications/retry", auth=ADMIN_AUTH)

        assert response.status_code == 200
        assert response.json() == {"message": "Notifications re-queued", "requeued": 1}
        assert outbox.dead_letters == []
        assert outbox.pending == []
        assert user_repository.find_by_email("ada@example.com").confirmation_email is True

    def test_nothing_to_retry(self, client: TestClient, admin: User) -> None:
        response = client.post("/v1/notifications/retry", auth=ADMIN_AUTH)

        assert response.status_code == 200
        assert response.json()["requeued"] == 0

    def test_requires_admin(
        self, client: TestClient, admin: User, mailer: Mock, outbox: InMemoryOutbox
    ) -> None:
        make_active_user(client, mailer, "ada@example.com")
        outbox.dead_letters.append(NotificationTask(TaskKind.SEND_APPROVAL, admin.id, "x"))

        response = client.post(
            "/v1/notifications/retry", auth=("ada@example.com", STRONG_PASSWORD)
        )

        assert response.status_code == 403
        assert len(outbox.dead_letters) == 1
