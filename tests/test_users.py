"""
Tests for user endpoints.

These tests verify:
  - Create, read, list, update and delete of user profiles
  - Field validation (name length, membership level, opening balance)
  - Duplicate emails are rejected
  - Users with transfer history cannot be deleted
  - The ledger endpoint and its limit
"""

import re

import pytest


def user_body(**overrides):
    body = {
        "first_name": "Ann",
        "last_name": "Lee",
        "phone": "0810000000",
        "email": "ann@example.com",
    }
    body.update(overrides)
    return body


class TestCreateUser:
    """Tests for POST /users."""

    async def test_create_user(self, client):
        response = await client.post(
            "/users", json=user_body(membership_level="Gold", points="12.50")
        )
        assert response.status_code == 201
        data = response.json()
        assert data["id"] > 0
        assert data["first_name"] == "Ann"
        assert data["last_name"] == "Lee"
        assert data["email"] == "ann@example.com"
        assert data["membership_level"] == "Gold"
        assert data["points"] == "12.50"
        assert re.match(r"^\d{1,2}/\d{1,2}/\d{4}$", data["member_since"])

    async def test_defaults(self, client):
        response = await client.post("/users", json=user_body())
        data = response.json()
        assert data["membership_level"] == "Bronze"
        assert data["points"] == "0.00"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"first_name": "Anne"},
            {"last_name": "  "},
            {"membership_level": "Diamond"},
            {"points": "-1.00"},
            {"points": "1.005"},
            {"phone": ""},
        ],
    )
    async def test_invalid_fields(self, client, overrides):
        response = await client.post("/users", json=user_body(**overrides))
        assert response.status_code == 400
        assert response.json()["error_type"] == "invalid_argument"

    async def test_names_are_measured_after_trimming(self, client):
        response = await client.post("/users", json=user_body(first_name=" Bo "))
        assert response.status_code == 201

    async def test_invalid_email_is_422(self, client):
        response = await client.post("/users", json=user_body(email="not-an-email"))
        assert response.status_code == 422

    async def test_duplicate_email(self, client):
        await client.post("/users", json=user_body())
        response = await client.post("/users", json=user_body(phone="0819999999"))
        assert response.status_code == 409
        assert response.json()["error_type"] == "conflict"


class TestReadUsers:
    """Tests for GET /users and GET /users/{id}."""

    async def test_get_user(self, client, api_user):
        user_id = await api_user("3.00")

        response = await client.get(f"/users/{user_id}")
        assert response.status_code == 200
        assert response.json()["id"] == user_id
        assert response.json()["points"] == "3.00"

    async def test_get_unknown_user(self, client):
        response = await client.get("/users/999")
        assert response.status_code == 404
        assert response.json()["error_type"] == "account_not_found"

    async def test_get_non_positive_id(self, client):
        response = await client.get("/users/0")
        assert response.status_code == 400

    async def test_list_users(self, client, api_user):
        first = await api_user()
        second = await api_user()

        response = await client.get("/users")
        assert response.status_code == 200
        ids = {u["id"] for u in response.json()}
        assert ids == {first, second}


class TestUpdateUser:
    """Tests for PUT /users/{id}."""

    async def test_partial_update(self, client, api_user):
        user_id = await api_user("5.00")

        response = await client.put(
            f"/users/{user_id}", json={"membership_level": "Platinum", "phone": "0899999999"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["membership_level"] == "Platinum"
        assert data["phone"] == "0899999999"
        assert data["first_name"] == "Bo"
        assert data["points"] == "5.00"

    async def test_points_cannot_be_updated(self, client, api_user):
        """Unknown fields are ignored; an otherwise empty update is rejected."""
        user_id = await api_user("5.00")

        response = await client.put(f"/users/{user_id}", json={"points": "100.00"})
        assert response.status_code == 400
        assert response.json()["detail"] == "No fields to update"
        assert (await client.get(f"/users/{user_id}")).json()["points"] == "5.00"

    async def test_email_taken_by_other_user(self, client, api_user):
        first = await api_user()
        second = await api_user()
        other_email = (await client.get(f"/users/{first}")).json()["email"]

        response = await client.put(f"/users/{second}", json={"email": other_email})
        assert response.status_code == 409

    async def test_keeping_own_email_is_fine(self, client, api_user):
        user_id = await api_user()
        own_email = (await client.get(f"/users/{user_id}")).json()["email"]

        response = await client.put(f"/users/{user_id}", json={"email": own_email})
        assert response.status_code == 200

    async def test_update_unknown_user(self, client):
        response = await client.put("/users/999", json={"phone": "0800000000"})
        assert response.status_code == 404


class TestDeleteUser:
    """Tests for DELETE /users/{id}."""

    async def test_delete_user_without_history(self, client, api_user):
        user_id = await api_user()

        response = await client.delete(f"/users/{user_id}")
        assert response.status_code == 200
        assert response.json()["message"] == "User deleted successfully"
        assert (await client.get(f"/users/{user_id}")).status_code == 404

    async def test_delete_refused_with_history(self, client, api_user):
        sender = await api_user("10.00")
        receiver = await api_user("0")
        await client.post(
            "/transfers",
            json={"fromUserId": sender, "toUserId": receiver, "amount": "1.00"},
        )

        for user_id in (sender, receiver):
            response = await client.delete(f"/users/{user_id}")
            assert response.status_code == 409
            assert response.json()["error_type"] == "conflict"

    async def test_delete_unknown_user(self, client):
        response = await client.delete("/users/999")
        assert response.status_code == 404


class TestLedgerEndpoint:
    """Tests for GET /users/{id}/ledger."""

    async def test_ledger_newest_first_with_limit(self, client, api_user):
        sender = await api_user("10.00")
        a = await api_user("0")
        b = await api_user("0")
        for receiver, amount in ((a, "1.00"), (b, "0.50"), (a, "0.25")):
            await client.post(
                "/transfers",
                json={"fromUserId": sender, "toUserId": receiver, "amount": amount},
            )

        response = await client.get(f"/users/{sender}/ledger")
        entries = response.json()
        assert [e["change"] for e in entries] == ["-0.25", "-0.50", "-1.00"]
        assert [e["balanceAfter"] for e in entries] == ["8.25", "8.50", "9.00"]

        limited = await client.get(f"/users/{sender}/ledger", params={"limit": 2})
        assert len(limited.json()) == 2

    async def test_new_user_has_empty_ledger(self, client, api_user):
        user_id = await api_user("10.00")

        response = await client.get(f"/users/{user_id}/ledger")
        assert response.status_code == 200
        assert response.json() == []

    async def test_ledger_unknown_user(self, client):
        response = await client.get("/users/999/ledger")
        assert response.status_code == 404


class TestHealth:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
