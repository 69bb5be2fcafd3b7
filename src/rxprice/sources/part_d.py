"""Medicare Part D Spending by Drug (CMS data API).

Each drug has one "Overall" row (all manufacturers) carrying weighted
average spending per dosage unit for several years, in columns named
``Avg_Spnd_Per_Dsg_Unt_Wghtd_<year>``. The latest non-empty year is used.
"""

import logging
import re
from decimal import Decimal
from typing import Any

import requests

from rxprice.ingest.normalizers import parse_price
from rxprice.sources.base import SpendingRecord, SpendingSource
from rxprice.sources.http import DEFAULT_TIMEOUT_SECONDS, get_json

logger = logging.getLogger(__name__)

PART_D_URL = (
    "https://data.cms.gov/data-api/v1/dataset/"
    "7e0b4365-fd63-4a29-8f5e-e0ac9f66a81b/data"
)
RESULT_LIMIT = 50
OVERALL_MANUFACTURER = "Overall"

_UNIT_SPEND_COLUMN = re.compile(r"^Avg_Spnd_Per_Dsg_Unt_Wghtd_(\d{4})$")


def latest_unit_spending(record: dict[str, Any]) -> Decimal | None:
    """Most recent weighted average spending per dosage unit in a row."""
    by_year: list[tuple[int, Decimal]] = []
    for column, value in record.items():
        match = _UNIT_SPEND_COLUMN.match(column)
        if not match:
            continue
        price = parse_price(value)
        if price is not None and price > 0:
            by_year.append((int(match.group(1)), price))

    if not by_year:
        return None
    return max(by_year)[1]


class PartDSpendingSource(SpendingSource):
    """Average unit spending from Medicare Part D."""

    def __init__(
        self,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout

    def search(self, name: str) -> SpendingRecord | None:
        params = {"keyword": name, "size": RESULT_LIMIT}
        data = get_json(
            self.session, PART_D_URL, "Part D spending", params=params, timeout=self.timeout
        )
        if not isinstance(data, list):
            return None

        lower_name = name.lower()
        matches = [
            rec
            for rec in data
            if lower_name in str(rec.get("Gnrc_Name", "")).lower()
            or lower_name in str(rec.get("Brnd_Name", "")).lower()
        ]
        # Prefer the all-manufacturer summary row
        matches.sort(key=lambda rec: rec.get("Mftr_Name") != OVERALL_MANUFACTURER)

        for record in matches:
            unit_price = latest_unit_spending(record)
            if unit_price is not None:
                logger.info(
                    f"Part D spending for {name}: {record.get('Brnd_Name')} "
                    f"${unit_price}/unit"
                )
                return SpendingRecord(unit_price=unit_price)

        return None
