from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from .config import BusinessConfig
from .db import Db
from .domain import GarmentInput
from .errors import ConflictError, NotFoundError, StorageError, ValidationError
from .reports import dashboard_summary, invoice_display_status, revenue_report
from .wiring import build_services


def _prompt(msg: str) -> str:
    return input(msg).strip()


def run_cli(db: Db, business: BusinessConfig) -> None:
    svc = build_services(business)
    cur = business.currency

    while True:
        print("\n=== Tailor Ledger ===")
        print("1) List customers")
        print("2) Add customer")
        print("3) Create order")
        print("4) Collect payment")
        print("5) Mark invoice paid (settle order)")
        print("6) List orders")
        print("7) Update order status")
        print("8) List invoices")
        print("9) Workers + stats")
        print("10) Dashboard + revenue (last 30 days)")
        print("11) Reconcile customer totals")
        print("12) Activate / deactivate worker")
        print("0) Exit")

        choice = _prompt("> ")
        try:
            if choice == "0":
                return

            elif choice == "1":
                with db.session() as conn:
                    rows = svc.customers.search(conn, _prompt("search (optional): "))
                for r in rows:
                    print(
                        f'{r["id"]} {r["name"]} {r["mobile"]} orders={r["total_orders"]} '
                        f'paid={cur} {r["total_paid"]} pending={cur} {r["total_pending"]}'
                    )

            elif choice == "2":
                name = _prompt("name: ")
                mobile = _prompt("mobile: ")
                address = _prompt("address: ")
                email = _prompt("email (optional): ") or None
                with db.transaction() as conn:
                    c = svc.customers.register(conn, name=name, mobile=mobile, address=address, email=email)
                print(f'Created customer {c["id"]}')

            elif choice == "3":
                customer_id = _prompt("customer_id: ")
                with db.session() as conn:
                    previous = svc.orders.previous_measurements(conn, customer_id)
                for p in previous:
                    shown = ", ".join(f"{k}={v}" for k, v in p["measurements"].items())
                    print(f'  {p["order_id"]} {p["taken_at"]:%Y-%m-%d} {"/".join(p["garments"])}: {shown}')

                garments: list[GarmentInput] = []
                while True:
                    gtype = _prompt("garment type (empty to finish): ")
                    if not gtype:
                        break
                    qty = int(_prompt("  quantity: ") or "1")
                    subtypes: dict[str, str] = {}
                    while True:
                        opt = _prompt("  option (e.g. collar=mandarin, empty to finish): ")
                        if not opt:
                            break
                        k, _, v = opt.partition("=")
                        subtypes[k.strip()] = v.strip()
                    gnotes = _prompt("  notes (optional): ") or None
                    garments.append(GarmentInput(garment_type=gtype, quantity=qty, subtypes=subtypes, notes=gnotes))

                measurements: dict[str, object] = {}
                if previous and _prompt("reuse latest measurements? (y/n): ").lower() == "y":
                    measurements.update(previous[0]["measurements"])
                while True:
                    m = _prompt("measurement (e.g. chest=38, empty to finish): ")
                    if not m:
                        break
                    k, _, v = m.partition("=")
                    measurements[k.strip()] = v.strip()

                total = _prompt(f"total amount ({cur}): ")
                advance = _prompt(f"advance paid ({cur}, default 0): ") or "0"
                mode = _prompt("payment mode (cash/upi/card/other): ") or "cash"
                delivery = _prompt("delivery date (YYYY-MM-DD): ")
                tailor_id = _prompt("tailor_id (optional): ") or None
                priority = _prompt("priority (low/medium/high): ") or "medium"
                notes = _prompt("notes (optional): ") or None

                with db.transaction() as conn:
                    created = svc.ledger.create_order(
                        conn,
                        customer_id=customer_id,
                        garments=garments,
                        measurements=measurements,
                        total_amount=total,
                        advance_paid=advance,
                        delivery_date=delivery,
                        tailor_id=tailor_id,
                        priority=priority,
                        payment_mode=mode,
                        notes=notes,
                    )
                for w in created.warnings:
                    print(f"[WARNING] {w}")
                o = created.order
                print(
                    f'Created order {o["id"]} status={o["payment_status"]} pending={cur} {o["pending_amount"]} '
                    f'invoice={created.invoice["invoice_number"]}'
                )

            elif choice == "4":
                order_id = _prompt("order_id: ")
                amount = _prompt(f"amount ({cur}): ")
                mode = _prompt("payment mode (cash/upi/card/other): ") or "cash"
                notes = _prompt("notes (optional): ") or None
                with db.transaction() as conn:
                    snap = svc.ledger.collect_payment(
                        conn, order_id=order_id, amount=amount, payment_mode=mode, notes=notes
                    )
                print(
                    f'Payment {snap.payment["id"]} recorded. order {order_id} '
                    f'status={snap.order["payment_status"]} pending={cur} {snap.order["pending_amount"]}'
                )

            elif choice == "5":
                order_id = _prompt("order_id: ")
                mode = _prompt("payment mode (cash/upi/card/other): ") or "cash"
                with db.transaction() as conn:
                    snap = svc.ledger.settle_order(conn, order_id=order_id, payment_mode=mode)
                print(f'Invoice {snap.invoice["invoice_number"]} is {snap.invoice["status"]}')

            elif choice == "6":
                status = _prompt("status filter (optional): ") or None
                with db.session() as conn:
                    rows = svc.orders.list_orders(conn, status=status, limit=50)
                for r in rows:
                    print(
                        f'{r["id"]} {r["customer_name"]} due={r["delivery_date"]} {r["status"]} '
                        f'{r["payment_status"]} total={r["total_amount"]} pending={r["pending_amount"]} '
                        f'tailor={r["tailor_name"] or "-"}'
                    )

            elif choice == "7":
                order_id = _prompt("order_id: ")
                status = _prompt("new status (in_progress/completed/delivered): ")
                with db.transaction() as conn:
                    o = svc.orders.advance_status(conn, order_id=order_id, status=status)
                print(f'Order {o["id"]} is now {o["status"]}')

            elif choice == "8":
                today = date.today()
                with db.session() as conn:
                    invoices = svc.invoice_repo.list(conn, limit=50)
                    orders = {o["id"]: o for o in svc.order_repo.list(conn, limit=None)}
                for inv in invoices:
                    shown = invoice_display_status(inv, orders.get(inv["order_id"]), today)
                    print(f'{inv["invoice_number"]} order={inv["order_id"]} {cur} {inv["amount"]} {shown}')

            elif choice == "9":
                with db.session() as conn:
                    stats = svc.workers.stats(conn)
                for s in stats:
                    w = s.worker
                    print(
                        f'{w["id"]} {w["name"]} ({w["role"]}) assigned={s.assigned_orders} '
                        f'completed={s.completed_orders} earnings={cur} {s.earnings}'
                    )

            elif choice == "10":
                today = date.today()
                d2 = datetime.now(timezone.utc)
                d1 = d2 - timedelta(days=30)
                with db.session() as conn:
                    customers = svc.customer_repo.list(conn, limit=None)
                    orders = svc.order_repo.list(conn, limit=None)
                    payments = svc.payment_repo.list(conn, limit=None)
                dash = dashboard_summary(customers, orders, today, business.upcoming_days)
                rep = revenue_report(orders, payments, d1, d2)
                print(
                    f'customers={dash["customers"]} orders this month={dash["orders_this_month"]} '
                    f'pending={cur} {dash["pending_payments"]} income this month={cur} {dash["income_this_month"]}'
                )
                for o in dash["upcoming_deliveries"]:
                    print(f'  upcoming: {o["id"]} {o["customer_name"]} due={o["delivery_date"]}')
                print(f"Revenue report (last 30 days): {rep}")

            elif choice == "11":
                customer_id = _prompt("customer_id: ")
                repair = _prompt("repair if inconsistent? (y/n): ").lower() == "y"
                with db.transaction() as conn:
                    rec = svc.ledger.reconcile_customer(conn, customer_id, repair=repair)
                print(f"stored={rec.stored} computed={rec.computed} consistent={rec.consistent} repaired={rec.repaired}")

            elif choice == "12":
                worker_id = _prompt("worker_id: ")
                active = _prompt("active? (y/n): ").lower() == "y"
                with db.transaction() as conn:
                    w = svc.workers.set_active(conn, worker_id=worker_id, is_active=active)
                print(f'Worker {w["id"]} {w["name"]} active={w["is_active"]}')

            else:
                print("Unknown choice.")

        except ValidationError as e:
            print(f"[INPUT ERROR] {e}")
        except NotFoundError as e:
            print(f"[NOT FOUND] {e}")
        except ConflictError as e:
            print(f"[CONFLICT] {e}")
        except StorageError as e:
            print(f"[DB ERROR] {e}")
        except ValueError as e:
            print(f"[VALUE ERROR] {e}")
