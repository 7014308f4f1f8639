"""
Currency Normalization

All cross-country figures are reported in EUR. Mexican orders are priced in
MXN and converted with a static rate; every other country code is treated as
already being EUR so unknown codes never drop revenue.
"""

from typing import Optional

from retail_analytics.config import get_settings

REPORTING_CURRENCY = "EUR"


def normalize(amount: float, country_code: Optional[str], rate: Optional[float] = None) -> float:
    """
    Convert an amount tagged with a country code into EUR.

    Args:
        amount: Amount in the country's local currency
        country_code: ISO country code of the store (MX converts, anything else passes through)
        rate: MXN to EUR rate, defaults to REPORT_MXN_TO_EUR_RATE

    Returns:
        Amount in EUR
    """
    if country_code != "MX":
        return amount
    if rate is None:
        rate = get_settings().reporting.mxn_to_eur_rate
    return amount * rate


def currency_for(country_code: Optional[str]) -> str:
    """Local currency of a store, used when showing original-currency amounts."""
    return "MXN" if country_code == "MX" else REPORTING_CURRENCY


def detect_campaign_country(campaign_name: Optional[str]) -> str:
    """
    Guess the market of a Meta campaign from its name.

    Campaigns are named like `PRO_Citas_Club_CDMX` or `PRO_Leads_Madrid`;
    anything without a Mexican marker belongs to Spain.
    """
    name = (campaign_name or "").upper()
    mexican_markers = ("CDMX", "MÉXICO", "MEXICO", "_MX", "MX_")
    if any(marker in name for marker in mexican_markers):
        return "MX"
    return "ES"
