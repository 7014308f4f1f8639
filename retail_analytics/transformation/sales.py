"""
Sales Metrics

Reductions over Shopify orders: EUR revenue series, product rankings and the
VIP customer table.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from retail_analytics.transformation.currency import currency_for, normalize
from retail_analytics.transformation.periods import DatedValue
from retail_analytics.transformation.records import Appointment, Order


@dataclass(frozen=True)
class ProductSales:
    """Units and revenue of one product"""
    name: str
    sales: int
    revenue: float
    product_id: Optional[str] = None


@dataclass(frozen=True)
class VipCustomer:
    """High lifetime-value customer"""
    email: str
    name: str
    city: Optional[str]
    ltv: float
    ltv_eur: float
    currency: str
    order_count: int
    next_appointment: Optional[datetime] = None


def revenue_values(orders: Iterable[Order], rate: Optional[float] = None) -> List[DatedValue]:
    """One EUR-normalized DatedValue per order, dated by order creation."""
    return [
        DatedValue(order.created_at.date(), normalize(order.total_price, order.country, rate))
        for order in orders
    ]


def order_count_values(orders: Iterable[Order]) -> List[DatedValue]:
    return [DatedValue(order.created_at.date(), 1.0) for order in orders]


def top_products(orders: Iterable[Order], limit: int = 10) -> List[ProductSales]:
    """
    Rank products by line item revenue.

    Line items are keyed by product id, falling back to the title for custom
    items without one.
    """
    products: Dict[str, dict] = {}
    for order in orders:
        for item in order.line_items:
            key = item.product_id or item.title
            entry = products.setdefault(
                key,
                {"name": item.title, "sales": 0, "revenue": 0.0, "product_id": item.product_id},
            )
            entry["sales"] += item.quantity
            entry["revenue"] += item.price * item.quantity

    ranked = sorted(products.values(), key=lambda p: p["revenue"], reverse=True)
    return [ProductSales(**entry) for entry in ranked[:limit]]


def vip_customers(
    orders: Iterable[Order],
    threshold_eur: float,
    limit: int = 10,
    rate: Optional[float] = None,
) -> List[VipCustomer]:
    """
    Customers whose lifetime value reaches the EUR threshold.

    LTV is shown in the customer's store currency but ranked in EUR. The
    next appointment is filled in by with_next_appointments().
    """
    customers: Dict[str, dict] = {}
    for order in orders:
        if not order.customer_email:
            continue
        entry = customers.setdefault(
            order.customer_email,
            {
                "email": order.customer_email,
                "name": order.customer_name or order.customer_email,
                "city": None,
                "ltv": 0.0,
                "ltv_eur": 0.0,
                "currency": currency_for(order.country),
                "order_count": 0,
            },
        )
        entry["ltv"] += order.total_price
        entry["ltv_eur"] += normalize(order.total_price, order.country, rate)
        entry["order_count"] += 1
        if entry["city"] is None:
            entry["city"] = order.store

    ranked = sorted(
        (c for c in customers.values() if c["ltv_eur"] >= threshold_eur),
        key=lambda c: c["ltv_eur"],
        reverse=True,
    )
    return [VipCustomer(**entry) for entry in ranked[:limit]]


def next_appointments(appointments: Iterable[Appointment]) -> Dict[str, datetime]:
    """Earliest non-canceled appointment per customer email."""
    earliest: Dict[str, datetime] = {}
    for appointment in appointments:
        if appointment.is_canceled or not appointment.customer_email:
            continue
        current = earliest.get(appointment.customer_email)
        if current is None or appointment.datetime < current:
            earliest[appointment.customer_email] = appointment.datetime
    return earliest


def with_next_appointments(
    customers: Sequence[VipCustomer],
    upcoming_appointments: Iterable[Appointment],
) -> List[VipCustomer]:
    by_email = next_appointments(upcoming_appointments)
    return [replace(customer, next_appointment=by_email.get(customer.email)) for customer in customers]
