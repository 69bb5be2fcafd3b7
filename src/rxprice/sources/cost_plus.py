"""Mark Cuban Cost Plus Drugs public API (commodity wholesale pricing).

API: https://us-central1-costplusdrugs-publicapi.cloudfunctions.net/main
Free, no key. Prices are "$x.xx" strings; ``requested_quote`` is returned
when ``quantity_units`` is sent.
"""

import logging

import requests

from rxprice.ingest.normalizers import parse_price
from rxprice.sources.base import CommodityQuote, CommoditySource
from rxprice.sources.http import DEFAULT_TIMEOUT_SECONDS, get_json

logger = logging.getLogger(__name__)

COST_PLUS_URL = "https://us-central1-costplusdrugs-publicapi.cloudfunctions.net/main"


class CostPlusDrugsSource(CommoditySource):
    """Commodity quotes from Cost Plus Drugs."""

    def __init__(
        self,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout

    def search(
        self,
        name: str,
        strength: str | None = None,
        quantity: int | None = None,
    ) -> CommodityQuote | None:
        params: dict[str, str] = {"medication_name": name}
        if strength:
            params["strength"] = strength
        if quantity:
            params["quantity_units"] = str(quantity)

        data = get_json(
            self.session, COST_PLUS_URL, "Cost Plus", params=params, timeout=self.timeout
        )
        if not isinstance(data, dict) or not data.get("results"):
            return None

        result = data["results"][0]
        unit_price = parse_price(result.get("unit_price"))
        total_quote = parse_price(result.get("requested_quote"))
        if unit_price is None and total_quote is None:
            return None

        is_brand = bool(result.get("brand_name")) and result.get("brand_generic") != "Generic"

        logger.info(
            f"Cost Plus quote for {name}: unit=${unit_price}, total=${total_quote}, "
            f"brand={is_brand}"
        )
        return CommodityQuote(unit_price=unit_price, total_quote=total_quote, is_brand=is_brand)
