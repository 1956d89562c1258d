"""
Orders Report Export with File Locking

Writes a restaurant's orders to an Excel workbook, one row per order line.
Workers may run several exports at once, so each workbook is guarded by
its own lock file.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

import pandas as pd
from filelock import FileLock, Timeout

import logging

logger = logging.getLogger(__name__)


class ReportExporter:
    """
    Excel report writer.

    Args:
        data_directory: Folder receiving the workbooks
        lock_timeout: Seconds to wait for a workbook lock
    """

    REPORT_COLUMNS = [
        "order_id",
        "status",
        "created_at",
        "client_id",
        "restaurant_name",
        "product_id",
        "product_name",
        "unit_price",
        "quantity",
        "subtotal",
        "order_total",
        "exported_at",
    ]

    def __init__(self, data_directory: str | Path, lock_timeout: float = 30):
        self.data_dir = Path(data_directory)
        self.lock_timeout = lock_timeout

    def report_path(self, restaurant_id: int) -> Path:
        return self.data_dir / f"orders_report_{restaurant_id}.xlsx"

    def _ensure_data_dir(self) -> None:
        if not self.data_dir.exists():
            self.data_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.data_dir}")

    @classmethod
    def build_rows(cls, orders: Iterable[dict[str, Any]], exported_at: str) -> list[dict[str, Any]]:
        """Flatten order projections (JSON form) into report rows."""
        rows = []
        for order in orders:
            for line in order.get("lines", []):
                rows.append({
                    "order_id": order["id"],
                    "status": order["status"],
                    "created_at": order["created_at"],
                    "client_id": order["client_id"],
                    "restaurant_name": order.get("restaurant_name"),
                    "product_id": line["product_id"],
                    "product_name": line["product_name"],
                    "unit_price": str(line["unit_price"]),
                    "quantity": line["quantity"],
                    "subtotal": str(line["subtotal"]),
                    "order_total": str(order["total"]),
                    "exported_at": exported_at,
                })
        return rows

    def export_orders(
        self,
        restaurant_id: int,
        orders: list[dict[str, Any]],
        exported_at: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """
        Replace the restaurant's workbook with the given orders.

        Lock timeouts are reported in the result. Write errors (OSError)
        propagate so the calling task can retry.
        """
        self._ensure_data_dir()

        path = self.report_path(restaurant_id)
        result = {
            "success": False,
            "message": "",
            "rows": 0,
            "path": str(path),
        }

        try:
            lock = FileLock(str(path) + ".lock", timeout=self.lock_timeout)

            with lock:
                logger.debug(f"Lock acquired for report of restaurant #{restaurant_id}")

                stamp = (exported_at or datetime.now(timezone.utc)).isoformat()
                rows = self.build_rows(orders, stamp)
                df = pd.DataFrame(rows, columns=self.REPORT_COLUMNS)
                df.to_excel(str(path), index=False, engine="openpyxl")

                logger.info(
                    f"Report for restaurant #{restaurant_id} written: "
                    f"{len(orders)} orders, {len(rows)} rows"
                )

                result["success"] = True
                result["message"] = f"Exported {len(orders)} orders"
                result["rows"] = len(rows)

            logger.debug(f"Lock released for report of restaurant #{restaurant_id}")

        except Timeout:
            result["message"] = f"Lock timeout ({self.lock_timeout}s)"
            logger.error(f"Lock timeout for report of restaurant #{restaurant_id}")

        except OSError:
            logger.exception(f"Error writing report for restaurant #{restaurant_id}")
            raise

        return result

    def read_report(self, restaurant_id: int) -> list[dict[str, Any]]:
        """Rows of an existing workbook, empty when none was written."""
        path = self.report_path(restaurant_id)
        if not path.exists():
            return []
        df = pd.read_excel(path, engine="openpyxl", dtype=str)
        return df.to_dict("records")
