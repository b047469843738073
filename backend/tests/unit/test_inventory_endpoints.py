"""Tests for holdings, adjust, offer list and trade potential endpoints."""
import pytest


class TestGetHoldings:
    """Tests for GET /users/{user_id}/holdings."""

    def test_get_holdings_success(self, client, store):
        """Holdings list every owned card with its quantity."""
        store.adjust("user_a", 1, 3)
        store.adjust("user_a", 7, 1)

        response = client.get("/users/user_a/holdings")

        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == "user_a"
        assert data["cards"] == [
            {"card_id": 1, "quantity": 3},
            {"card_id": 7, "quantity": 1},
        ]
        assert data["total_cards"] == 4

    def test_get_holdings_empty(self, client):
        """A user with no cards has empty holdings."""
        response = client.get("/users/nobody/holdings")

        assert response.status_code == 200
        assert response.json()["cards"] == []
        assert response.json()["total_cards"] == 0

    def test_holdings_reflect_adjustments(self, client):
        """A successful adjust is visible to the next holdings read."""
        headers = {"X-User-Id": "user_a"}

        assert client.get("/users/user_a/holdings").json()["cards"] == []

        client.post("/users/user_a/cards/5/adjust", json={"adjustment": 2}, headers=headers)

        assert client.get("/users/user_a/holdings").json()["cards"] == [{"card_id": 5, "quantity": 2}]


class TestAdjustCardQuantity:
    """Tests for POST /users/{user_id}/cards/{card_id}/adjust."""

    def test_adjust_creates_entry(self, client, store):
        """Adding to an absent card creates the entry with quantity = delta."""
        response = client.post(
            "/users/user_a/cards/9/adjust",
            json={"adjustment": 3},
            headers={"X-User-Id": "user_a"},
        )

        assert response.status_code == 200
        assert response.json() == {"user_id": "user_a", "card_id": 9, "quantity": 3}
        assert store.get_holdings("user_a") == {9: 3}

    def test_adjust_to_zero_removes_card(self, client, store):
        """Adjusting to zero removes the card from visible holdings."""
        store.adjust("user_a", 9, 2)

        response = client.post(
            "/users/user_a/cards/9/adjust",
            json={"adjustment": -2},
            headers={"X-User-Id": "user_a"},
        )

        assert response.status_code == 200
        assert response.json()["quantity"] == 0
        assert store.get_holdings("user_a") == {}

    def test_adjust_to_negative_fails(self, client, store):
        """Removing more copies than owned fails and leaves holdings unchanged."""
        store.adjust("user_a", 9, 2)

        response = client.post(
            "/users/user_a/cards/9/adjust",
            json={"adjustment": -5},
            headers={"X-User-Id": "user_a"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_quantity"
        assert "Cannot adjust to negative quantity" in response.json()["detail"]
        assert store.get_holdings("user_a") == {9: 2}

    def test_adjustment_beyond_integer_range_fails(self, client, store):
        """An adjustment too large for the quantity column is a client error."""
        response = client.post(
            "/users/user_a/cards/9/adjust",
            json={"adjustment": 2**40},
            headers={"X-User-Id": "user_a"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_quantity"
        assert store.get_holdings("user_a") == {}

    def test_quantity_overflow_fails(self, client, store):
        """Adding copies past the largest storable quantity fails."""
        store.adjust("user_a", 9, 2**31 - 1)

        response = client.post(
            "/users/user_a/cards/9/adjust",
            json={"adjustment": 1},
            headers={"X-User-Id": "user_a"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_quantity"
        assert store.get_holdings("user_a") == {9: 2**31 - 1}

    def test_remove_unowned_card_fails(self, client, store):
        """Removing a card the user does not own fails with invalid_quantity."""
        response = client.post(
            "/users/user_a/cards/9/adjust",
            json={"adjustment": -1},
            headers={"X-User-Id": "user_a"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_quantity"
        assert store.get_holdings("user_a") == {}

    def test_zero_adjustment_fails(self, client):
        response = client.post(
            "/users/user_a/cards/9/adjust",
            json={"adjustment": 0},
            headers={"X-User-Id": "user_a"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_quantity"

    def test_adjust_other_users_collection_forbidden(self, client, store):
        """Users can only adjust their own collection."""
        response = client.post(
            "/users/user_a/cards/9/adjust",
            json={"adjustment": 1},
            headers={"X-User-Id": "user_b"},
        )

        assert response.status_code == 403
        assert response.json()["code"] == "forbidden"
        assert store.get_holdings("user_a") == {}

    def test_adjust_requires_actor(self, client):
        response = client.post("/users/user_a/cards/9/adjust", json={"adjustment": 1})

        assert response.status_code == 401

    def test_adjust_rejects_invalid_card_id(self, client):
        response = client.post(
            "/users/user_a/cards/0/adjust",
            json={"adjustment": 1},
            headers={"X-User-Id": "user_a"},
        )

        assert response.status_code == 422


class TestTradeOffers:
    """Tests for the /users/{user_id}/offers endpoints."""

    def test_list_and_unlist_card(self, client):
        headers = {"X-User-Id": "user_a"}

        response = client.put("/users/user_a/offers/3", headers=headers)
        assert response.status_code == 200
        assert response.json() == {"user_id": "user_a", "card_ids": [3]}

        client.put("/users/user_a/offers/1", headers=headers)
        assert client.get("/users/user_a/offers").json()["card_ids"] == [1, 3]

        response = client.delete("/users/user_a/offers/3", headers=headers)
        assert response.status_code == 200
        assert response.json()["card_ids"] == [1]

    def test_listing_is_idempotent(self, client):
        headers = {"X-User-Id": "user_a"}

        client.put("/users/user_a/offers/3", headers=headers)
        response = client.put("/users/user_a/offers/3", headers=headers)

        assert response.json()["card_ids"] == [3]

    def test_unlisting_absent_card_is_noop(self, client):
        response = client.delete("/users/user_a/offers/3", headers={"X-User-Id": "user_a"})

        assert response.status_code == 200
        assert response.json()["card_ids"] == []

    def test_cannot_change_another_users_offers(self, client):
        response = client.put("/users/user_a/offers/3", headers={"X-User-Id": "user_b"})

        assert response.status_code == 403


class TestTradePotential:
    """Tests for GET /users/{user_id}/trade-potential/{other_user_id}."""

    def test_duplicate_surfaces_both_ways(self, client, store):
        """X has 2 copies of C, Y has none: Y wants C from X; X can offer C to Y."""
        store.adjust("user_x", 10, 2)

        y_view = client.get("/users/user_y/trade-potential/user_x").json()
        x_view = client.get("/users/user_x/trade-potential/user_y").json()

        assert y_view["want_from_them"] == [10]
        assert y_view["can_offer"] == []
        assert x_view["can_offer"] == [10]
        assert x_view["want_from_them"] == []

    def test_requestable_limited_to_offer_list(self, client, store):
        """Only listed duplicates are requestable."""
        store.adjust("user_x", 10, 2)
        store.adjust("user_x", 11, 3)
        store.set_offer("user_x", 11, True)

        data = client.get("/users/user_y/trade-potential/user_x").json()

        assert data["want_from_them"] == [10, 11]
        assert data["requestable"] == [11]

    def test_potential_updates_after_adjust(self, client, store):
        """The cached holdings projection is refreshed after a mutation."""
        store.adjust("user_x", 10, 2)
        assert client.get("/users/user_y/trade-potential/user_x").json()["want_from_them"] == [10]

        client.post(
            "/users/user_y/cards/10/adjust",
            json={"adjustment": 1},
            headers={"X-User-Id": "user_y"},
        )

        assert client.get("/users/user_y/trade-potential/user_x").json()["want_from_them"] == []
