"""CMS NADAC (National Average Drug Acquisition Cost) source.

Source: https://data.medicaid.gov/dataset/dfa2ab14-06c2-457a-9e36-5cb6d80f8d93
Medicaid.gov DKAN datastore, searched by NDC description. Free, no key.
"""

import logging
from typing import Any

import requests

from rxprice.ingest.normalizers import normalize_strength, parse_price
from rxprice.sources.base import AcquisitionCost, AcquisitionCostSource
from rxprice.sources.http import DEFAULT_TIMEOUT_SECONDS, get_json

logger = logging.getLogger(__name__)

NADAC_URL = (
    "https://data.medicaid.gov/api/1/datastore/query/"
    "dfa2ab14-06c2-457a-9e36-5cb6d80f8d93/0"
)
RESULT_LIMIT = 50


def select_nadac_record(
    records: list[dict[str, Any]],
    name: str,
    strength: str | None = None,
) -> dict[str, Any] | None:
    """Pick the best NADAC record for a drug.

    Single-ingredient descriptions ("METFORMIN HCL 500 MG") win over
    combinations ("GLYBURIDE-METFORMIN 5-500 MG"); among those, a record
    whose description carries the requested strength wins. Records are
    assumed newest first.
    """
    drug_upper = name.upper().strip()
    single = [
        rec
        for rec in records
        if (rec.get("ndc_description") or "").upper().startswith(drug_upper)
        and parse_price(rec.get("nadac_per_unit"))
    ]
    preferred = single or [rec for rec in records if parse_price(rec.get("nadac_per_unit"))]
    if not preferred:
        return None

    wanted = normalize_strength(strength)
    if wanted:
        for rec in preferred:
            description = normalize_strength(rec.get("ndc_description"))
            if wanted in description:
                return rec

    return preferred[0]


class NADACSource(AcquisitionCostSource):
    """Acquisition costs from the Medicaid NADAC datastore."""

    def __init__(
        self,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout

    def search(self, name: str, strength: str | None = None) -> AcquisitionCost | None:
        params = {
            "limit": RESULT_LIMIT,
            "offset": 0,
            "conditions[0][property]": "ndc_description",
            "conditions[0][value]": f"{name.upper()}%",
            "conditions[0][operator]": "LIKE",
            "sort": "effective_date",
            "sort_order": "desc",
        }
        data = get_json(self.session, NADAC_URL, "NADAC", params=params, timeout=self.timeout)
        if not isinstance(data, dict):
            return None

        record = select_nadac_record(data.get("results") or [], name, strength)
        if record is None:
            return None

        unit_price = parse_price(record.get("nadac_per_unit"))
        if unit_price is None:
            return None

        is_otc = str(record.get("otc", "")).upper() == "Y"
        logger.info(
            f"NADAC match for {name}: {record.get('ndc_description')} "
            f"${unit_price}/unit (otc={is_otc})"
        )
        return AcquisitionCost(unit_price=unit_price, is_otc=is_otc)
