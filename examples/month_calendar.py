"""Example: Month calendar and store lag check for one machine

This example builds the daily view of a month for a single machine (best
and worst day, product and topping ranking), then compares the persisted
store with the live API for today to see how far the batch sync lags.

Prerequisites:
- Same environment variables as today_dashboard.py
"""

import logging
from datetime import datetime, timezone

from vending_core import Period, SalesConfig, SalesService

logging.basicConfig(level=logging.INFO)

service = SalesService.from_config(SalesConfig.from_env())
now = datetime.now(timezone.utc)
today = service.converter.business_today(now)

machine_id = service.registry.list_machines()[0]  # MODIFY AS NEEDED
month = Period.month_of(today)

view = service.get_aggregate(month, machine_id, "daily", now=now)

print(f"\n{machine_id} in {month.label}: {view.total_revenue} EUR over {view.total_sale_count} sales")
if view.best_day is not None:
    print(f"Best day:  {view.best_day.key} ({view.best_day.revenue} EUR)")
    print(f"Worst day: {view.worst_day.key} ({view.worst_day.revenue} EUR)")

print("\nTop products:")
for row in view.by_product[:5]:
    print(f"  {row.label:<30} {row.sale_count:>4} sales  {row.revenue:>8} EUR")

print("\nTop toppings:")
for row in view.by_topping[:5]:
    print(f"  {row.label:<30} {row.sale_count:>4} sales")

print("\nDaily calendar:")
print(view.buckets_frame().to_string(index=False))

# Store vs live for today
result = service.compare_sources(today, machine_id)
print(f"\nReconciliation for {today}: {result.summary}")
if not result.only_live.empty:
    print("Sales not yet in the store:")
    print(result.only_live)
