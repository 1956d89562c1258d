"""
Report Verification Script

Checks that an exported orders report reconciles: every order's line
subtotals add up to its total.
A product may legitimately appear on several lines of one order.
Run from project root: python scripts/verify.py --restaurant 1
"""

import argparse
import os
import sys
from decimal import Decimal

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd

from restaurant_orders.core.config import get_settings


def verify_report(restaurant_id: int) -> bool:
    path = os.path.join(get_settings().data_directory, f"orders_report_{restaurant_id}.xlsx")

    print("=" * 60)
    print("REPORT VERIFICATION")
    print("=" * 60)
    print(f"File: {path}")

    if not os.path.exists(path):
        print("\nReport not found! Queue one via POST /api/restaurants/{id}/orders/report")
        return False

    df = pd.read_excel(path, engine="openpyxl", dtype=str)
    print(f"\nRows: {len(df)}  Orders: {df['order_id'].nunique()}")

    mismatched = []
    for order_id, lines in df.groupby("order_id"):
        subtotal = sum((Decimal(v) for v in lines["subtotal"]), Decimal("0"))
        total = Decimal(lines["order_total"].iloc[0])
        if subtotal != total:
            mismatched.append((order_id, subtotal, total))

    for order_id, subtotal, total in mismatched[:10]:
        print(f"Order #{order_id}: lines sum to {subtotal}, total is {total}")

    revenue = sum(
        (Decimal(v) for v in df.drop_duplicates("order_id")["order_total"]),
        Decimal("0"),
    )
    print(f"\nRevenue: ${revenue}")

    ok = not mismatched
    print("\n" + "=" * 60)
    print("VERIFICATION PASSED" if ok else "VERIFICATION FAILED")
    print("=" * 60)
    return ok


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Report Verification Script")
    parser.add_argument("--restaurant", type=int, required=True, help="Restaurant id")
    args = parser.parse_args()

    sys.exit(0 if verify_report(args.restaurant) else 1)
