#!/usr/bin/env python3
"""Example: Track edits to an order and report what changed.

This script demonstrates the tracker lifecycle:
1. Start tracking properties of a live object
2. Mutate the object freely
3. Peek at the pending changes (baseline untouched)
4. Commit the current state as the new baseline
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from changekit import ChangesTracker, TrackingError


@dataclass
class Money:
    amount: Decimal
    currency: str


@dataclass
class Line:
    sku: str
    quantity: int
    price: Money


@dataclass
class Order:
    number: str
    customer: dict
    lines: List[Line] = field(default_factory=list)


def log_failure(error: TrackingError):
    print(f"  ! tracking failure: {error}")


def print_changes(title: str, tracker: ChangesTracker):
    changes = tracker.peek_changes()
    print(f"{title}: {len(changes)} change(s)")
    for change in changes:
        print(f"  {change.path}: {change.old_value!r} -> {change.new_value!r}")


def main():
    order = Order(
        number="SO-1001",
        customer={"name": "Ada", "address": {"city": "London", "zip": "N1"}},
        lines=[
            Line("SKU-1", 2, Money(Decimal("9.99"), "GBP")),
            Line("SKU-2", 1, Money(Decimal("24.50"), "GBP")),
        ],
    )

    # Money is a value type: report it replaced, not field by field
    tracker = ChangesTracker(
        is_atomic_value=lambda value: isinstance(value, Money),
        on_failure=log_failure
    )
    tracker.start_track(order, "customer")
    tracker.start_track(order, "lines", max_depth=2)

    order.customer["address"]["city"] = "Cambridge"
    order.lines[0].quantity = 3
    order.lines[1].price = Money(Decimal("19.99"), "GBP")
    print_changes("Pending", tracker)

    tracker.update_snapshots()
    print_changes("After commit", tracker)

    # Adding a line resizes the list: one change at "lines"
    order.lines.append(Line("SKU-3", 5, Money(Decimal("1.00"), "GBP")))
    print_changes("After append", tracker)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
