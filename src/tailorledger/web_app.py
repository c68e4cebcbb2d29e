from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from flask import Flask, jsonify, request

from .config import BusinessConfig, ConfigError, load_config
from .db import Db
from .domain import GarmentInput
from .errors import ConflictError, LedgerError, NotFoundError, StorageError, ValidationError
from .reports import dashboard_summary, invoice_display_status, revenue_report
from .wiring import Services, build_services

logger = logging.getLogger(__name__)

_HTTP_STATUS = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    StorageError: 503,
}


def _jsonable(value):
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _body(optional: bool = False) -> dict:
    data = request.get_json(silent=True)
    if data is None and optional:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def _garments(raw) -> list[GarmentInput]:
    if not isinstance(raw, list):
        raise ValidationError("garments must be a list.")
    out = []
    for g in raw:
        if not isinstance(g, dict):
            raise ValidationError("Each garment must be an object.")
        out.append(
            GarmentInput(
                garment_type=g.get("garment_type", ""),
                quantity=g.get("quantity", 1),
                subtypes=g.get("subtypes") or {},
                notes=g.get("notes"),
            )
        )
    return out


def create_app(db: Db, services: Services | None = None, business: BusinessConfig | None = None) -> Flask:
    business = business or BusinessConfig()
    svc = services or build_services(business)

    app = Flask(__name__)

    @app.errorhandler(LedgerError)
    def ledger_error(e: LedgerError):
        status = _HTTP_STATUS.get(type(e), 500)
        if status >= 500:
            logger.error("Request failed: %s", e)
        return jsonify({"error": {"code": e.code, "message": str(e)}}), status

    @app.get("/health")
    def health():
        return jsonify({"ok": True})

    @app.get("/customers")
    def customers_list():
        with db.session() as conn:
            rows = svc.customers.search(conn, request.args.get("q", ""))
        return jsonify(_jsonable(rows))

    @app.post("/customers")
    def customers_new():
        data = _body()
        with db.transaction() as conn:
            customer = svc.customers.register(
                conn,
                name=data.get("name", ""),
                mobile=data.get("mobile", ""),
                address=data.get("address", ""),
                email=data.get("email"),
                customer_id=data.get("id"),
            )
        return jsonify(_jsonable(customer)), 201

    @app.get("/customers/<customer_id>/measurements")
    def customers_measurements(customer_id: str):
        limit = request.args.get("limit", 10, type=int)
        with db.session() as conn:
            rows = svc.orders.previous_measurements(conn, customer_id, limit=limit)
        return jsonify(_jsonable(rows))

    @app.post("/customers/<customer_id>/reconcile")
    def customers_reconcile(customer_id: str):
        repair = request.args.get("repair") in {"1", "true", "yes"}
        with db.transaction() as conn:
            rec = svc.ledger.reconcile_customer(conn, customer_id, repair=repair)
        return jsonify(
            _jsonable(
                {
                    "customer_id": rec.customer_id,
                    "stored": rec.stored,
                    "computed": rec.computed,
                    "consistent": rec.consistent,
                    "repaired": rec.repaired,
                }
            )
        )

    @app.get("/orders")
    def orders_list():
        with db.session() as conn:
            rows = svc.orders.list_orders(
                conn,
                customer_id=request.args.get("customer_id"),
                status=request.args.get("status"),
                limit=request.args.get("limit", 50, type=int),
            )
        return jsonify(_jsonable(rows))

    @app.get("/orders/<order_id>")
    def orders_get(order_id: str):
        with db.session() as conn:
            order = svc.orders.get(conn, order_id)
            invoice = svc.invoice_repo.get_for_order(conn, order_id)
            payments = svc.payment_repo.list(conn, order_id=order_id, limit=None)
        return jsonify(_jsonable({"order": order, "invoice": invoice, "payments": payments}))

    @app.post("/orders")
    def orders_new():
        data = _body()
        order_id = request.headers.get("Idempotency-Key") or data.get("id")
        with db.transaction() as conn:
            created = svc.ledger.create_order(
                conn,
                customer_id=data.get("customer_id", ""),
                garments=_garments(data.get("garments")),
                measurements=data.get("measurements") or {},
                total_amount=data.get("total_amount"),
                advance_paid=data.get("advance_paid", 0),
                delivery_date=data.get("delivery_date"),
                tailor_id=data.get("tailor_id") or None,
                priority=data.get("priority", "medium"),
                payment_mode=data.get("payment_mode", "cash"),
                notes=data.get("notes"),
                order_id=order_id,
            )
        body = {
            "order": created.order,
            "invoice": created.invoice,
            "warnings": created.warnings,
            "replayed": created.replayed,
        }
        return jsonify(_jsonable(body)), (200 if created.replayed else 201)

    @app.post("/orders/<order_id>/payments")
    def orders_collect(order_id: str):
        data = _body()
        with db.transaction() as conn:
            snap = svc.ledger.collect_payment(
                conn,
                order_id=order_id,
                amount=data.get("amount"),
                payment_mode=data.get("payment_mode", "cash"),
                notes=data.get("notes"),
                payment_id=request.headers.get("Idempotency-Key") or data.get("id"),
                expected_version=data.get("expected_version"),
            )
        return jsonify(_jsonable(asdict(snap))), (200 if snap.replayed else 201)

    @app.post("/orders/<order_id>/settle")
    def orders_settle(order_id: str):
        data = _body(optional=True)
        with db.transaction() as conn:
            snap = svc.ledger.settle_order(
                conn,
                order_id=order_id,
                payment_mode=data.get("payment_mode", "cash"),
                notes=data.get("notes"),
                payment_id=request.headers.get("Idempotency-Key"),
            )
        return jsonify(_jsonable(asdict(snap)))

    @app.post("/orders/<order_id>/status")
    def orders_status(order_id: str):
        data = _body()
        with db.transaction() as conn:
            order = svc.orders.advance_status(conn, order_id=order_id, status=data.get("status", ""))
        return jsonify(_jsonable(order))

    @app.post("/orders/<order_id>/tailor")
    def orders_tailor(order_id: str):
        data = _body()
        with db.transaction() as conn:
            order = svc.orders.assign_tailor(conn, order_id=order_id, tailor_id=data.get("tailor_id", ""))
        return jsonify(_jsonable(order))

    @app.get("/invoices")
    def invoices_list():
        today = date.today()
        with db.session() as conn:
            invoices = svc.invoice_repo.list(conn, status=request.args.get("status"), limit=100)
            orders = {o["id"]: o for o in svc.order_repo.list(conn, limit=None)}
        rows = []
        for inv in invoices:
            row = dict(inv)
            row["display_status"] = invoice_display_status(inv, orders.get(inv["order_id"]), today)
            rows.append(row)
        return jsonify(_jsonable(rows))

    @app.get("/workers")
    def workers_list():
        with db.session() as conn:
            stats = svc.workers.stats(
                conn,
                active_only=request.args.get("all") is None,
                role=request.args.get("role"),
            )
        rows = []
        for s in stats:
            row = dict(s.worker)
            row.update(
                assigned_orders=s.assigned_orders,
                completed_orders=s.completed_orders,
                pending_orders=s.pending_orders,
                earnings=s.earnings,
            )
            rows.append(row)
        return jsonify(_jsonable(rows))

    @app.post("/workers")
    def workers_new():
        data = _body()
        with db.transaction() as conn:
            worker = svc.workers.register(
                conn,
                name=data.get("name", ""),
                mobile=data.get("mobile", ""),
                role=data.get("role", "tailor"),
                skills=data.get("skills") or [],
                wage_type=data.get("wage_type", "per_garment"),
                wage_amount=data.get("wage_amount", 0),
                worker_id=data.get("id"),
            )
        return jsonify(_jsonable(worker)), 201

    @app.post("/workers/<worker_id>/active")
    def workers_active(worker_id: str):
        data = _body()
        with db.transaction() as conn:
            worker = svc.workers.set_active(conn, worker_id=worker_id, is_active=data.get("is_active"))
        return jsonify(_jsonable(worker))

    @app.get("/reports/dashboard")
    def reports_dashboard():
        with db.session() as conn:
            customers = svc.customer_repo.list(conn, limit=None)
            orders = svc.order_repo.list(conn, limit=None)
        return jsonify(_jsonable(dashboard_summary(customers, orders, date.today(), business.upcoming_days)))

    @app.get("/reports/revenue")
    def reports_revenue():
        days = request.args.get("days", 30, type=int)
        d2 = datetime.now(timezone.utc)
        d1 = d2 - timedelta(days=days)
        with db.session() as conn:
            orders = svc.order_repo.list(conn, limit=None)
            payments = svc.payment_repo.list(conn, limit=None)
        return jsonify(_jsonable(revenue_report(orders, payments, d1, d2)))

    return app


if __name__ == "__main__":
    try:
        cfg = load_config("config.toml")
        logging.basicConfig(level=cfg.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
        app = create_app(Db(cfg.db), business=cfg.business)
        app.run(debug=True, host="127.0.0.1", port=5000)
    except ConfigError as e:
        print(f"[CONFIG ERROR] {e}")
        raise SystemExit(2)
