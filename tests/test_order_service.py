import pytest

from conftest import money
from tailorledger.domain import GarmentInput
from tailorledger.errors import NotFoundError, ValidationError


@pytest.fixture
def order(store, services, customer):
    with store.transaction() as conn:
        return services.ledger.create_order(
            conn,
            customer_id=customer["id"],
            garments=[GarmentInput(garment_type="Kurta")],
            measurements={},
            total_amount="800",
            advance_paid="200",
            delivery_date="2026-03-15",
        ).order


def advance(store, services, order_id, status):
    with store.transaction() as conn:
        return services.orders.advance_status(conn, order_id=order_id, status=status)


def test_status_moves_forward(store, services, order):
    assert advance(store, services, order["id"], "in_progress")["status"] == "in_progress"
    assert advance(store, services, order["id"], "delivered")["status"] == "delivered"


@pytest.mark.parametrize("target", ["pending", "shipped"])
def test_status_cannot_go_back_or_sideways(store, services, order, target):
    with pytest.raises(ValidationError):
        advance(store, services, order["id"], target)


def test_backward_move_rejected(store, services, order):
    advance(store, services, order["id"], "completed")
    with pytest.raises(ValidationError):
        advance(store, services, order["id"], "in_progress")


def test_status_change_keeps_money_untouched(store, services, order):
    advance(store, services, order["id"], "completed")
    with store.transaction() as conn:
        snap = services.ledger.collect_payment(conn, order_id=order["id"], amount="600")

    assert snap.order["status"] == "completed"
    assert snap.order["payment_status"] == "paid"
    assert snap.order["pending_amount"] == money("0")


def test_unknown_order(store, services):
    with pytest.raises(NotFoundError):
        advance(store, services, "ORD_nope", "in_progress")


def test_assign_tailor(store, services, order, tailor):
    with store.transaction() as conn:
        updated = services.orders.assign_tailor(conn, order_id=order["id"], tailor_id=tailor["id"])
    assert updated["tailor_name"] == "Ravi"


def test_assign_inactive_or_non_tailor_rejected(store, services, order, tailor):
    with store.transaction() as conn:
        helper = services.workers.register(conn, name="Meena", mobile="9000000002", role="worker")
        services.workers.set_active(conn, worker_id=tailor["id"], is_active=False)

    for worker_id in (helper["id"], tailor["id"]):
        with pytest.raises(ValidationError):
            with store.transaction() as conn:
                services.orders.assign_tailor(conn, order_id=order["id"], tailor_id=worker_id)


def test_delivered_order_cannot_be_reassigned(store, services, order, tailor):
    advance(store, services, order["id"], "delivered")
    with pytest.raises(ValidationError):
        with store.transaction() as conn:
            services.orders.assign_tailor(conn, order_id=order["id"], tailor_id=tailor["id"])


def test_list_orders_filters(store, services, order):
    advance(store, services, order["id"], "in_progress")
    with store.session() as conn:
        assert [o["id"] for o in services.orders.list_orders(conn, status="in_progress")] == [order["id"]]
        assert services.orders.list_orders(conn, status="pending") == []
        assert len(services.orders.list_orders(conn, customer_id="CUS_asha")) == 1


def test_duplicate_mobile_rejected(store, services, customer):
    with pytest.raises(ValidationError, match="already exists"):
        with store.transaction() as conn:
            services.customers.register(conn, name="Someone", mobile="9876543210", address="x")


def test_customer_requires_fields(store, services):
    with pytest.raises(ValidationError):
        with store.transaction() as conn:
            services.customers.register(conn, name="A", mobile="", address="x")


def test_customer_search(store, services, customer):
    with store.session() as conn:
        assert len(services.customers.search(conn, "asha")) == 1
        assert len(services.customers.search(conn, "98765")) == 1
        assert services.customers.search(conn, "zzz") == []


def test_registration_losing_the_mobile_race_is_a_validation_error(store, services, customer, monkeypatch):
    # The other registration commits between our lookup and our insert.
    monkeypatch.setattr(services.customer_repo, "get_by_mobile", lambda conn, mobile: None)

    with pytest.raises(ValidationError, match="already exists"):
        with store.transaction() as conn:
            services.customers.register(conn, name="Someone", mobile="9876543210", address="x")
    assert store.count("customer") == 1


def test_customer_fields_must_be_text(store, services):
    with pytest.raises(ValidationError):
        with store.transaction() as conn:
            services.customers.register(conn, name="A", mobile=9876543210, address="x")


def test_customer_search_is_not_limited_to_newest(store, services, customer):
    with store.transaction() as conn:
        for i in range(3):
            services.customers.register(conn, name=f"Kiran {i}", mobile=f"90000100{i:02d}", address="x")

    with store.session() as conn:
        assert [c["id"] for c in services.customers.search(conn, "asha", limit=2)] == ["CUS_asha"]
        assert len(services.customers.search(conn, "kiran", limit=2)) == 2
        assert len(services.customers.search(conn, "", limit=2)) == 2


def test_previous_measurements_newest_first(store, services, order):
    with store.transaction() as conn:
        for chest in (38, 40):
            services.ledger.create_order(
                conn,
                customer_id="CUS_asha",
                garments=[GarmentInput(garment_type="Shirt")],
                measurements={"chest": chest},
                total_amount="500",
                delivery_date="2026-03-18",
            )

    with store.session() as conn:
        rows = services.orders.previous_measurements(conn, "CUS_asha")
        assert [r["measurements"] for r in rows] == [{"chest": 40.0}, {"chest": 38.0}]
        assert rows[0]["garments"] == ["Shirt"]
        assert len(services.orders.previous_measurements(conn, "CUS_asha", limit=1)) == 1


def test_previous_measurements_for_unknown_customer(store, services):
    with pytest.raises(NotFoundError):
        with store.session() as conn:
            services.orders.previous_measurements(conn, "CUS_nobody")


def test_worker_reactivation(store, services, tailor):
    with store.transaction() as conn:
        services.workers.set_active(conn, worker_id=tailor["id"], is_active=False)
    with store.session() as conn:
        assert services.workers.stats(conn) == []
        assert len(services.workers.stats(conn, active_only=False)) == 1

    with store.transaction() as conn:
        worker = services.workers.set_active(conn, worker_id=tailor["id"], is_active=True)
    assert worker["is_active"] is True


def test_set_active_rejects_unknown_worker_and_non_bool(store, services, tailor):
    with pytest.raises(NotFoundError):
        with store.transaction() as conn:
            services.workers.set_active(conn, worker_id="WRK_ghost", is_active=False)
    with pytest.raises(ValidationError):
        with store.transaction() as conn:
            services.workers.set_active(conn, worker_id=tailor["id"], is_active="no")


def test_worker_stats_filter_by_role(store, services, tailor):
    with store.transaction() as conn:
        services.workers.register(conn, name="Meena", mobile="9000000002", role="worker")

    with store.session() as conn:
        assert [s.worker["name"] for s in services.workers.stats(conn, role="tailor")] == ["Ravi"]
        assert [s.worker["name"] for s in services.workers.stats(conn, role="worker")] == ["Meena"]
        with pytest.raises(ValidationError):
            services.workers.stats(conn, role="manager")
