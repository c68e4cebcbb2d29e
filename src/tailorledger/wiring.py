from __future__ import annotations

from dataclasses import dataclass

from .config import BusinessConfig
from .repositories.customer_repo import CustomerRepository
from .repositories.invoice_repo import InvoiceRepository
from .repositories.order_repo import OrderRepository
from .repositories.payment_repo import PaymentRepository
from .repositories.worker_repo import WorkerRepository
from .services.customer_service import CustomerService
from .services.ledger_service import LedgerService
from .services.order_service import OrderService
from .services.worker_service import WorkerService


@dataclass
class Services:
    customer_repo: CustomerRepository
    order_repo: OrderRepository
    payment_repo: PaymentRepository
    invoice_repo: InvoiceRepository
    worker_repo: WorkerRepository
    ledger: LedgerService
    customers: CustomerService
    orders: OrderService
    workers: WorkerService


def build_services(business: BusinessConfig | None = None) -> Services:
    business = business or BusinessConfig()
    customer_repo = CustomerRepository()
    order_repo = OrderRepository()
    payment_repo = PaymentRepository()
    invoice_repo = InvoiceRepository(prefix=business.invoice_prefix)
    worker_repo = WorkerRepository()

    return Services(
        customer_repo=customer_repo,
        order_repo=order_repo,
        payment_repo=payment_repo,
        invoice_repo=invoice_repo,
        worker_repo=worker_repo,
        ledger=LedgerService(
            customer_repo=customer_repo,
            order_repo=order_repo,
            payment_repo=payment_repo,
            invoice_repo=invoice_repo,
            worker_repo=worker_repo,
        ),
        customers=CustomerService(customer_repo=customer_repo),
        orders=OrderService(order_repo=order_repo, worker_repo=worker_repo, customer_repo=customer_repo),
        workers=WorkerService(worker_repo=worker_repo, order_repo=order_repo),
    )
