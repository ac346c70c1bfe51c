from decimal import Decimal

from test_events import create_activity, create_event


def add_event_with_flat_gratuity(client, users, auth_headers, name, date):
    """Bob and Carol each owe Alice 1 plus half a cent of flat gratuity."""
    bob, carol = users["bob"], users["carol"]
    event_id = create_event(client, auth_headers["alice"], [bob.id, carol.id], name=name, date=date)
    create_activity(client, auth_headers["alice"], event_id, [
        {"item_name": "Coffee", "item_cost": "2", "payers": {str(bob.id): "1", str(carol.id): "1"}}
    ], gratuity="0.01", percent=False)
    return event_id


def test_dashboard_lists_events_by_date(client, users, auth_headers):
    later = add_event_with_flat_gratuity(client, users, auth_headers, "Later", "2025-12-01T18:00:00")
    earlier = add_event_with_flat_gratuity(client, users, auth_headers, "Earlier", "2025-09-01T18:00:00")

    response = client.get("/users/me", headers=auth_headers["bob"])
    assert response.status_code == 200
    data = response.json()

    assert data["id"] == users["bob"].id
    assert data["display_name"] == "Bob"
    assert data["email"] == "bob@example.com"
    assert [e["id"] for e in data["events"]] == [earlier, later]
    assert [e["name"] for e in data["events"]] == ["Earlier", "Later"]

    # Each event rounds 1.005 down, the grand total rounds 2.010 once
    assert [Decimal(e["user_total_owing"]) for e in data["events"]] == [Decimal("1.00"), Decimal("1.00")]
    assert Decimal(data["user_total_owing"]) == Decimal("2.01")
    assert Decimal(data["user_total_owed"]) == 0


def test_dashboard_for_user_without_events(client, users, auth_headers):
    data = client.get("/users/me", headers=auth_headers["dave"]).json()
    assert data["events"] == []
    assert Decimal(data["user_total_owed"]) == 0
    assert Decimal(data["user_total_owing"]) == 0


def test_dashboard_requires_authentication(client):
    assert client.get("/users/me").status_code == 401
