"""Example: Today's dashboard view across all machines

This example builds the hourly view for the current business day. Today is
an open period, so the sales come from the live vendor API; the comparison
with yesterday comes from the persisted store.

Prerequisites:
- Set VS_API_TOKEN (live vendor API) and VS_STORE_URL / VS_STORE_KEY (store)
- Set VS_MACHINES_JSON to a registry file, e.g. utils/machines.json:
    {"m-001": {"device_id": "865123045678901", "name": "Playa Norte"}}
"""

import logging
from datetime import datetime, timezone

from vending_core import Period, SalesConfig, SalesService

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

config = SalesConfig.from_env()
service = SalesService.from_config(config)

now = datetime.now(timezone.utc)
today = service.converter.business_today(now)

view = service.get_aggregate(Period.day(today), "all", "hourly", now=now, compare_previous=True)

print(f"\nSales for {today} ({config.business_tz})")
print("-" * 60)
print(f"Revenue:        {view.total_revenue} EUR")
print(f"Sales:          {view.total_sale_count}")
print(f"Average ticket: {view.average_ticket} EUR")
if view.revenue_change_pct is not None:
    print(f"vs. yesterday:  {view.revenue_change_pct:+.1f}% ({view.previous_revenue} EUR)")
if view.peak_hour is not None:
    print(f"Peak hour:      {view.peak_hour.key} ({view.peak_hour.sale_count} sales)")

print("\nBy machine:")
for row in view.by_machine:
    print(f"  {row.label:<20} {row.revenue:>8} EUR  {row.sale_count:>4} sales")

print("\nBy payment method:")
for row in view.by_payment:
    print(f"  {row.label:<20} {row.revenue:>8} EUR  {row.sale_count:>4} sales")

if view.is_partial:
    print("\nWARNING: some sources failed, figures are incomplete:")
    for error in view.fetch_errors:
        print(f"  - {error}")

# Hourly buckets as a DataFrame for charting
print("\nHourly buckets:")
print(view.buckets_frame().query("sale_count > 0"))
