"""
Appointment Attribution

Links each order to the appointment category that most plausibly drove it:
the most recent non-canceled appointment of the same customer that happened
at or before the order and no longer than `lookback_days` before it.

Tie-break: appointments sharing the exact same datetime keep their input
order, and the first one wins.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Sequence

import structlog

from retail_analytics.database.models import AppointmentCategory
from retail_analytics.transformation.currency import normalize
from retail_analytics.transformation.records import Appointment, Order

logger = structlog.get_logger(__name__)

Attribution = Dict[str, Optional[AppointmentCategory]]


def group_appointments_by_email(appointments: Iterable[Appointment]) -> Dict[str, List[Appointment]]:
    """
    Index non-canceled appointments by customer email.

    Each customer's list is sorted newest first. Python's sort is stable with
    reverse=True, so same-datetime appointments stay in input order.
    """
    grouped: Dict[str, List[Appointment]] = defaultdict(list)
    for appointment in appointments:
        if appointment.is_canceled or not appointment.customer_email:
            continue
        grouped[appointment.customer_email].append(appointment)

    for email in grouped:
        grouped[email].sort(key=lambda a: a.datetime, reverse=True)
    return dict(grouped)


def attribute_order(
    order: Order,
    appointments_by_email: Dict[str, List[Appointment]],
    lookback_days: int,
) -> Optional[AppointmentCategory]:
    """Category of the appointment that drove a single order, if any."""
    if not order.customer_email:
        return None

    earliest = order.created_at - timedelta(days=lookback_days)
    for appointment in appointments_by_email.get(order.customer_email, ()):
        if appointment.datetime > order.created_at:
            continue
        if appointment.datetime < earliest:
            # newest first: everything after this is older still
            break
        return appointment.category
    return None


def attribute(
    orders: Sequence[Order],
    appointments: Iterable[Appointment],
    lookback_days: int,
) -> Attribution:
    """
    Attribute every order to an appointment category.

    Args:
        orders: Orders to attribute
        appointments: Candidate appointments (canceled ones are ignored)
        lookback_days: Max days between appointment and order

    Returns:
        Mapping of order id to category, None for orders with no qualifying
        appointment (organic orders) or whose appointment category is unknown
    """
    if lookback_days < 0:
        raise ValueError("lookback_days must be >= 0")

    by_email = group_appointments_by_email(appointments)
    attribution = {
        order.id: attribute_order(order, by_email, lookback_days)
        for order in orders
    }

    logger.debug(
        "Orders attributed",
        orders=len(orders),
        customers_with_appointments=len(by_email),
        attributed=sum(1 for category in attribution.values() if category is not None),
        lookback_days=lookback_days,
    )
    return attribution


@dataclass(frozen=True)
class OrdersBreakdown:
    """Order counts by channel and attributed appointment type"""
    total_orders: int = 0
    orders_online: int = 0
    orders_from_medicion: int = 0
    orders_from_fitting: int = 0
    orders_without_appointment: int = 0


def orders_breakdown(orders: Sequence[Order], attribution: Attribution) -> OrdersBreakdown:
    """
    Split orders into online orders and store orders by appointment type.

    Online orders (no tags) are never counted against an appointment type.
    """
    online = medicion = fitting = without = 0
    for order in orders:
        if order.is_online:
            online += 1
            continue
        category = attribution.get(order.id)
        if category == AppointmentCategory.MEDICION:
            medicion += 1
        elif category == AppointmentCategory.FITTING:
            fitting += 1
        else:
            without += 1

    return OrdersBreakdown(
        total_orders=len(orders),
        orders_online=online,
        orders_from_medicion=medicion,
        orders_from_fitting=fitting,
        orders_without_appointment=without,
    )


def revenue_by_category(
    orders: Sequence[Order],
    attribution: Attribution,
    rate: Optional[float] = None,
) -> Dict[Optional[AppointmentCategory], float]:
    """EUR revenue per attributed category, None holding unattributed revenue."""
    totals: Dict[Optional[AppointmentCategory], float] = {
        AppointmentCategory.MEDICION: 0.0,
        AppointmentCategory.FITTING: 0.0,
        None: 0.0,
    }
    for order in orders:
        category = attribution.get(order.id)
        totals[category] += normalize(order.total_price, order.country, rate)
    return totals
