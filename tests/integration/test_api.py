"""
Integration tests for the API layer.

Repositories are swapped for the in-memory implementations through
dependency overrides, so the full request path runs without Postgres or
RabbitMQ. The app lifespan is not entered, so no background sweep runs.
"""
from datetime import datetime, timedelta
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from listing_lifecycle.api.dependencies import (
    get_clock,
    get_event_publisher,
    get_history_repo,
    get_listing_repo,
    get_payment_rail,
    get_payment_repo,
    get_team_repo,
)
from listing_lifecycle.api.main import app

SELLER = {"X-User-Id": "seller-1"}
STRANGER = {"X-User-Id": "intruder"}
MODERATOR = {"X-User-Id": "mod-1", "X-User-Role": "moderator"}
ADMIN = {"X-User-Id": "root", "X-User-Role": "admin"}


@pytest.fixture()
def client(listing_repo, payment_repo, team_repo, history_repo, publisher, rail, clock):
    app.dependency_overrides[get_listing_repo] = lambda: listing_repo
    app.dependency_overrides[get_payment_repo] = lambda: payment_repo
    app.dependency_overrides[get_team_repo] = lambda: team_repo
    app.dependency_overrides[get_history_repo] = lambda: history_repo
    app.dependency_overrides[get_event_publisher] = lambda: publisher
    app.dependency_overrides[get_payment_rail] = lambda: rail
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


def _create_listing(client: TestClient, **overrides) -> dict:  # type: ignore[no-untyped-def, type-arg]
    body = {"title": "Camera", "price_override": "1500.00"}
    body.update(overrides)
    response = client.post("/listings", json=body, headers=SELLER)
    assert response.status_code == 201, response.text
    return response.json()


def _pay_and_publish(client: TestClient, listing_id: str) -> dict:  # type: ignore[type-arg]
    payment = client.post(f"/listings/{listing_id}/activation", headers=SELLER).json()
    client.post(f"/payments/{payment['id']}/proof", json={"proof_ref": "p.png"}, headers=SELLER)
    response = client.post(
        f"/admin/payments/{payment['id']}/review",
        json={"decision": "APPROVE"},
        headers=MODERATOR,
    )
    assert response.status_code == 200, response.text
    return response.json()


class TestListings:
    def test_create_requires_identity(self, client: TestClient) -> None:
        response = client.post("/listings", json={"title": "Camera"})
        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "unauthenticated"

    def test_create_draft_listing(self, client: TestClient) -> None:
        data = _create_listing(client)
        assert data["seller_id"] == "seller-1"
        assert data["status"] == "DRAFT"
        assert data["active"] is False

    def test_create_for_another_seller_is_forbidden(self, client: TestClient) -> None:
        response = client.post(
            "/listings", json={"title": "Camera", "seller_id": "seller-2"}, headers=SELLER
        )
        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "forbidden"

    def test_draft_is_hidden_from_the_public(self, client: TestClient) -> None:
        listing = _create_listing(client)
        assert client.get(f"/listings/{listing['id']}").status_code == 404
        assert client.get(f"/listings/{listing['id']}", headers=SELLER).status_code == 200
        assert client.get(f"/listings/{listing['id']}", headers=MODERATOR).status_code == 200

    def test_donation_is_public_immediately(self, client: TestClient) -> None:
        listing = _create_listing(client, is_donation=True)
        assert listing["status"] == "PUBLISHED"
        response = client.get(f"/listings/{listing['id']}")
        assert response.status_code == 200
        assert response.json()["is_donation"] is True

    def test_edit_reports_changed_fields(self, client: TestClient) -> None:
        listing = _create_listing(client)
        response = client.patch(
            f"/listings/{listing['id']}",
            json={"title": "Camera", "description": "With lens"},
            headers=SELLER,
        )
        assert response.status_code == 200
        assert response.json()["changed_fields"] == ["description"]

    def test_stranger_cannot_edit(self, client: TestClient) -> None:
        listing = _create_listing(client)
        response = client.patch(
            f"/listings/{listing['id']}", json={"title": "Mine"}, headers=STRANGER
        )
        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "not_owner"

    def test_seller_listing_index(self, client: TestClient) -> None:
        _create_listing(client)
        _create_listing(client, title="Tripod", is_donation=True)

        response = client.get("/sellers/seller-1/listings?status=DRAFT", headers=SELLER)
        assert response.status_code == 200
        assert response.json()["total"] == 1

        assert client.get("/sellers/seller-1/listings", headers=STRANGER).status_code == 403
        assert client.get("/sellers/seller-1/listings", headers=ADMIN).json()["total"] == 2

    def test_deactivate_then_edit_is_forbidden(self, client: TestClient) -> None:
        listing = _create_listing(client)
        _pay_and_publish(client, listing["id"])

        response = client.post(f"/listings/{listing['id']}/deactivate", headers=SELLER)
        assert response.status_code == 200
        assert response.json()["active"] is False

        permissions = client.get(f"/listings/{listing['id']}/permissions", headers=SELLER).json()
        assert permissions["can_edit"] is False
        assert permissions["can_reactivate"] is True

        response = client.patch(
            f"/listings/{listing['id']}", json={"title": "x"}, headers=SELLER
        )
        assert response.status_code == 403

        assert client.post(f"/listings/{listing['id']}/reactivate", headers=SELLER).status_code == 200

    def test_archive_releases_payment(self, client: TestClient) -> None:
        listing = _create_listing(client)
        payment = client.post(f"/listings/{listing['id']}/activation", headers=SELLER).json()

        response = client.delete(f"/listings/{listing['id']}", headers=SELLER)

        assert response.status_code == 200
        assert response.json()["released_payments"] == 1
        released = client.get(f"/payments/{payment['id']}", headers=SELLER).json()
        assert released["status"] == "CANCELLED"
        assert client.delete(f"/listings/{listing['id']}", headers=SELLER).status_code == 403

    def test_history_lists_transitions(self, client: TestClient) -> None:
        listing = _create_listing(client)
        _pay_and_publish(client, listing["id"])

        response = client.get(f"/listings/{listing['id']}/history", headers=SELLER)

        assert response.status_code == 200
        assert [entry["to_status"] for entry in response.json()["history"]] == [
            "DRAFT",
            "PENDING",
            "AWAITING_PAYMENT",
            "PROOF_SUBMITTED",
            "APPROVED",
            "PUBLISHED",
        ]

    def test_unknown_listing_status(self, client: TestClient) -> None:
        response = client.get(f"/listings/{uuid4()}/status")
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "not_found"

    def test_hidden_listing_status_follows_listing_visibility(self, client: TestClient) -> None:
        listing = _create_listing(client)
        url = f"/listings/{listing['id']}/status"

        assert client.get(url).status_code == 404
        assert client.get(url, headers=STRANGER).status_code == 404
        assert client.get(url, headers=SELLER).json()["status"] == "DRAFT"
        assert client.get(url, headers=MODERATOR).status_code == 200
        assert client.get(url, headers=ADMIN).status_code == 200

    def test_null_title_is_rejected(self, client: TestClient) -> None:
        listing = _create_listing(client)

        response = client.patch(f"/listings/{listing['id']}", json={"title": None}, headers=SELLER)

        assert response.status_code == 422
        stored = client.get(f"/listings/{listing['id']}", headers=SELLER)
        assert stored.status_code == 200
        assert stored.json()["title"] == "Camera"

    def test_expiry_can_be_set_and_edited(self, client: TestClient, clock) -> None:
        chosen = (clock() + timedelta(days=30)).isoformat()
        listing = _create_listing(client, expires_at=chosen)
        assert datetime.fromisoformat(listing["expires_at"]) == clock() + timedelta(days=30)

        extended = clock() + timedelta(days=60)
        response = client.patch(
            f"/listings/{listing['id']}",
            json={"expires_at": extended.isoformat()},
            headers=SELLER,
        )

        assert response.status_code == 200
        assert response.json()["changed_fields"] == ["expires_at"]
        assert datetime.fromisoformat(response.json()["listing"]["expires_at"]) == extended

    def test_expiry_in_the_past_is_rejected(self, client: TestClient, clock) -> None:
        listing = _create_listing(client)
        response = client.patch(
            f"/listings/{listing['id']}",
            json={"expires_at": (clock() - timedelta(days=1)).isoformat()},
            headers=SELLER,
        )
        assert response.status_code == 422

    def test_another_sellers_team_cannot_be_bound(self, client: TestClient) -> None:
        foreign = client.post(
            "/teams", json={"name": "Their store"}, headers={"X-User-Id": "seller-2"}
        ).json()

        created = client.post(
            "/listings",
            json={"title": "Camera", "sales_team_id": foreign["id"]},
            headers=SELLER,
        )
        assert created.status_code == 404
        assert created.json()["detail"]["code"] == "not_found"

        listing = _create_listing(client)
        edited = client.patch(
            f"/listings/{listing['id']}", json={"sales_team_id": foreign["id"]}, headers=SELLER
        )
        assert edited.status_code == 404


class TestPayments:
    def test_activation_is_idempotent(self, client: TestClient, rail) -> None:
        listing = _create_listing(client)

        first = client.post(f"/listings/{listing['id']}/activation", headers=SELLER)
        second = client.post(f"/listings/{listing['id']}/activation", headers=SELLER)

        assert first.status_code == 201
        assert first.json()["status"] == "PENDING"
        assert first.json()["amount"] == "9.90"
        assert second.json()["id"] == first.json()["id"]
        assert rail.calls == 1

    def test_donation_activation_is_invalid_state(self, client: TestClient) -> None:
        listing = _create_listing(client, is_donation=True)
        response = client.post(f"/listings/{listing['id']}/activation", headers=SELLER)
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "invalid_state"

    def test_expired_window_scenario(self, client: TestClient, clock) -> None:
        listing = _create_listing(client)
        first = client.post(f"/listings/{listing['id']}/activation", headers=SELLER).json()

        clock.advance(minutes=30, seconds=1)

        current = client.get(f"/listings/{listing['id']}/payment", headers=SELLER).json()
        assert current["status"] == "EXPIRED"

        late = client.post(
            f"/payments/{first['id']}/proof", json={"proof_ref": "late.png"}, headers=SELLER
        )
        assert late.status_code == 410
        assert late.json()["detail"]["code"] == "window_expired"

        second = client.post(f"/listings/{listing['id']}/activation", headers=SELLER).json()
        assert second["id"] != first["id"]
        assert second["status"] == "PENDING"

    def test_reject_then_resubmit_scenario(self, client: TestClient) -> None:
        listing = _create_listing(client)
        payment = client.post(f"/listings/{listing['id']}/activation", headers=SELLER).json()
        client.post(f"/payments/{payment['id']}/proof", json={"proof_ref": "a.png"}, headers=SELLER)

        rejected = client.post(
            f"/admin/payments/{payment['id']}/review",
            json={"decision": "REJECT", "note": "unclear image"},
            headers=MODERATOR,
        ).json()
        assert rejected["status"] == "REJECTED"
        assert rejected["review_decision_note"] == "unclear image"
        status = client.get(f"/listings/{listing['id']}/status", headers=SELLER).json()
        assert status["status"] == "AWAITING_PAYMENT"

        resubmitted = client.post(
            f"/payments/{payment['id']}/proof", json={"proof_ref": "b.png"}, headers=SELLER
        )
        assert resubmitted.status_code == 200
        assert resubmitted.json()["status"] == "PROOF_SUBMITTED"

    def test_approval_publishes_listing(self, client: TestClient) -> None:
        listing = _create_listing(client)
        approved = _pay_and_publish(client, listing["id"])

        assert approved["status"] == "APPROVED"
        status = client.get(f"/listings/{listing['id']}/status").json()
        assert status["status"] == "PUBLISHED"
        assert status["active"] is True
        assert status["publicly_visible"] is True

    def test_approval_after_content_expiry_makes_listing_visible(
        self, client: TestClient, clock
    ) -> None:
        listing = _create_listing(client)
        clock.advance(days=8)

        _pay_and_publish(client, listing["id"])

        status = client.get(f"/listings/{listing['id']}/status").json()
        assert status["status"] == "PUBLISHED"
        assert status["publicly_visible"] is True
        public = client.get(f"/listings/{listing['id']}")
        assert public.status_code == 200
        assert datetime.fromisoformat(public.json()["expires_at"]) > clock()

    def test_proof_on_approved_payment_is_invalid_state(self, client: TestClient) -> None:
        listing = _create_listing(client)
        approved = _pay_and_publish(client, listing["id"])
        response = client.post(
            f"/payments/{approved['id']}/proof", json={"proof_ref": "x.png"}, headers=SELLER
        )
        assert response.status_code == 422

    def test_seller_cannot_review(self, client: TestClient) -> None:
        listing = _create_listing(client)
        payment = client.post(f"/listings/{listing['id']}/activation", headers=SELLER).json()
        response = client.post(
            f"/admin/payments/{payment['id']}/review",
            json={"decision": "APPROVE"},
            headers=SELLER,
        )
        assert response.status_code == 403

    def test_stranger_cannot_read_payment(self, client: TestClient) -> None:
        listing = _create_listing(client)
        payment = client.post(f"/listings/{listing['id']}/activation", headers=SELLER).json()
        assert client.get(f"/payments/{payment['id']}", headers=STRANGER).status_code == 403
        assert client.get(f"/payments/{payment['id']}", headers=MODERATOR).status_code == 200

    def test_cancel_then_cancel_again(self, client: TestClient) -> None:
        listing = _create_listing(client)
        payment = client.post(f"/listings/{listing['id']}/activation", headers=SELLER).json()

        first = client.post(f"/payments/{payment['id']}/cancel", headers=SELLER)
        second = client.post(f"/payments/{payment['id']}/cancel", headers=SELLER)

        assert first.json()["status"] == "CANCELLED"
        assert second.status_code == 422


class TestAdmin:
    def test_moderation_queue(self, client: TestClient) -> None:
        listing = _create_listing(client)
        payment = client.post(f"/listings/{listing['id']}/activation", headers=SELLER).json()
        client.post(f"/payments/{payment['id']}/proof", json={"proof_ref": "a.png"}, headers=SELLER)

        response = client.get("/admin/payments/awaiting-review", headers=MODERATOR)

        assert response.status_code == 200
        assert [p["id"] for p in response.json()["payments"]] == [payment["id"]]
        assert client.get("/admin/payments/awaiting-review", headers=SELLER).status_code == 403

    def test_sweep_expires_due_payments(self, client: TestClient, clock) -> None:
        listing = _create_listing(client)
        client.post(f"/listings/{listing['id']}/activation", headers=SELLER)
        clock.advance(hours=1)

        response = client.post("/admin/payments/sweep", headers=ADMIN)

        assert response.status_code == 200
        assert response.json() == {"expired": 1}


class TestContacts:
    def _team(self, client: TestClient, name: str, members: list[str]) -> dict:  # type: ignore[type-arg]
        response = client.post(
            "/teams", json={"name": name, "member_user_ids": members}, headers=SELLER
        )
        assert response.status_code == 201, response.text
        return response.json()

    def test_single_team_is_selected(self, client: TestClient) -> None:
        team = self._team(client, "Store", ["u1", "u2"])
        client.put(
            f"/teams/{team['id']}/members/u2",
            json={"availability": "UNAVAILABLE"},
            headers=SELLER,
        )
        listing = _create_listing(client, is_donation=True)

        route = client.get(f"/listings/{listing['id']}/contact").json()

        assert route["selection"]["outcome"] == "SELECTED"
        assert [m["user_id"] for m in route["members"]] == ["u1"]

    def test_several_teams_are_ambiguous_until_chosen(self, client: TestClient) -> None:
        store = self._team(client, "Store", ["u1"])
        self._team(client, "Online", ["u2"])
        listing = _create_listing(client, is_donation=True)

        route = client.get(f"/listings/{listing['id']}/contact").json()
        assert route["selection"]["outcome"] == "AMBIGUOUS"
        assert len(route["selection"]["candidates"]) == 2
        assert route["members"] == []

        chosen = client.get(f"/listings/{listing['id']}/contact?team_id={store['id']}").json()
        assert chosen["selection"]["outcome"] == "SELECTED"
        assert [m["user_id"] for m in chosen["members"]] == ["u1"]

    def test_hidden_listing_has_no_contact_route(self, client: TestClient) -> None:
        listing = _create_listing(client)
        response = client.get(f"/listings/{listing['id']}/contact")
        assert response.status_code == 422

    def test_membership_of_foreign_team_is_forbidden(self, client: TestClient) -> None:
        team = self._team(client, "Store", [])
        response = client.put(f"/teams/{team['id']}/members/u9", json={}, headers=STRANGER)
        assert response.status_code == 403

    def test_member_contact_details_and_removal(self, client: TestClient) -> None:
        team = self._team(client, "Store", ["u1", "u2"])

        updated = client.put(
            f"/teams/{team['id']}/members/u1",
            json={"name": "Ana", "email": "ana@example.com", "whatsapp": "+55 11 99999-0000"},
            headers=SELLER,
        )
        assert updated.status_code == 200
        member = updated.json()["members"][0]
        assert (member["name"], member["email"], member["whatsapp"]) == (
            "Ana",
            "ana@example.com",
            "+55 11 99999-0000",
        )

        removed = client.delete(f"/teams/{team['id']}/members/u1", headers=SELLER)
        assert removed.status_code == 200
        assert [m["user_id"] for m in removed.json()["members"]] == ["u2"]
        again = client.delete(f"/teams/{team['id']}/members/u1", headers=SELLER)
        assert again.status_code == 404
        foreign = client.delete(f"/teams/{team['id']}/members/u2", headers=STRANGER)
        assert foreign.status_code == 403

    def test_invalid_member_email_is_rejected(self, client: TestClient) -> None:
        team = self._team(client, "Store", [])
        response = client.put(
            f"/teams/{team['id']}/members/u1", json={"email": "not-an-email"}, headers=SELLER
        )
        assert response.status_code == 422

    def test_members_are_listed_by_position(self, client: TestClient) -> None:
        team = self._team(client, "Store", ["u1", "u2"])
        client.put(f"/teams/{team['id']}/members/u3", json={}, headers=SELLER)
        client.delete(f"/teams/{team['id']}/members/u2", headers=SELLER)
        rejoined = client.put(f"/teams/{team['id']}/members/u2", json={}, headers=SELLER).json()

        assert [(m["user_id"], m["position"]) for m in rejoined["members"]] == [
            ("u1", 0),
            ("u3", 2),
            ("u2", 3),
        ]
        available = client.get(f"/teams/{team['id']}/members/available").json()
        assert [m["user_id"] for m in available["members"]] == ["u1", "u3", "u2"]

    def test_rename_and_delete_team(self, client: TestClient) -> None:
        team = self._team(client, "Store", ["u1"])

        renamed = client.patch(f"/teams/{team['id']}", json={"name": "Flagship"}, headers=SELLER)
        assert renamed.status_code == 200
        assert renamed.json()["name"] == "Flagship"
        assert (
            client.patch(f"/teams/{team['id']}", json={"name": "Mine"}, headers=STRANGER).status_code
            == 403
        )

        assert client.delete(f"/teams/{team['id']}", headers=STRANGER).status_code == 403
        assert client.delete(f"/teams/{team['id']}", headers=SELLER).status_code == 204
        assert client.get(f"/teams/{team['id']}/members/available").status_code == 404
        assert client.delete(f"/teams/{team['id']}", headers=SELLER).status_code == 404

    def test_deleted_bound_team_falls_back_to_remaining_team(self, client: TestClient) -> None:
        bound = self._team(client, "Store", ["u1"])
        self._team(client, "Online", ["u2"])
        listing = _create_listing(client, is_donation=True, sales_team_id=bound["id"])
        assert client.get(f"/listings/{listing['id']}/contact").json()["members"][0]["user_id"] == "u1"

        client.delete(f"/teams/{bound['id']}", headers=SELLER)

        route = client.get(f"/listings/{listing['id']}/contact").json()
        assert route["selection"]["outcome"] == "SELECTED"
        assert [m["user_id"] for m in route["members"]] == ["u2"]
