"""
Length-of-stay exceptions and stay exclusion rules.
"""
import logging
from typing import Tuple
import pandas as pd

from .config import BUSINESS_RULES, BusinessRulesConfig

logger = logging.getLogger(__name__)


def apply_los_exceptions(
    islands: pd.DataFrame,
    stays: pd.DataFrame,
    rules: BusinessRulesConfig = None
) -> pd.DataFrame:
    """
    Adjust LENGTH_OF_STAY for stays the paid-units formula gets wrong.

    Recovery: an unpaid stay with LENGTH_OF_STAY 0 whose bed-day lines all
    carry an invalid-date-range remark takes the units billed on those lines.
    Clamp: LENGTH_OF_STAY is bounded to [0, TOTAL_DOS], since paid lines can
    double-cover the same dates.

    Args:
        islands: Charge lines with STAY_ID
        stays: One row per stay
        rules: Business rules (uses default if None)

    Returns:
        Stays with LENGTH_OF_STAY adjusted
    """
    rules = rules or BUSINESS_RULES
    stays = stays.copy()

    bed_day = islands[islands["IS_BED_DAY_CODE"].astype(bool)].copy()
    bed_day["_INVALID"] = bed_day["REMARK"].isin(rules.invalid_date_remarks)
    bed_day["_UNITS"] = pd.to_numeric(bed_day["UNITS"], errors="coerce").fillna(0)

    per_stay = bed_day.groupby("STAY_ID").agg(
        ALL_INVALID=("_INVALID", "all"),
        BILLED_UNITS=("_UNITS", "sum"),
    )
    all_invalid = stays["STAY_ID"].map(per_stay["ALL_INVALID"]).fillna(False).astype(bool)
    billed_units = stays["STAY_ID"].map(per_stay["BILLED_UNITS"])

    recover = (
        (stays["LENGTH_OF_STAY"] == 0)
        & ~stays["STAY_HAS_PAID_CLAIMS"]
        & all_invalid
    )
    stays.loc[recover, "LENGTH_OF_STAY"] = billed_units[recover]
    logger.info(f"Recovered billed length of stay for {int(recover.sum())} stays with invalid date remarks")

    over = stays["LENGTH_OF_STAY"] > stays["TOTAL_DOS"]
    stays["LENGTH_OF_STAY"] = stays["LENGTH_OF_STAY"].clip(lower=0, upper=stays["TOTAL_DOS"])
    logger.info(f"Clamped length of stay to total days for {int(over.sum())} stays")

    return stays


def exclude_unverified_stays(
    islands: pd.DataFrame,
    stays: pd.DataFrame,
    rules: BusinessRulesConfig = None
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Drop stays at listed facility groups that have no paid claims and no bed-day lines.

    These are therapy-only billings entered as stays. Matching is a
    case-insensitive prefix match on PROVIDER_NAME.

    Args:
        islands: Charge lines with STAY_ID
        stays: One row per stay
        rules: Business rules (uses default if None)

    Returns:
        Tuple of (islands, stays) without the excluded stays
    """
    rules = rules or BUSINESS_RULES
    prefixes = tuple(p.upper() for p in rules.excluded_facility_prefixes)

    names = stays["PROVIDER_NAME"].fillna("").astype(str).str.upper()
    at_facility = names.str.startswith(prefixes) if prefixes else pd.Series(False, index=stays.index)
    excluded = at_facility & ~stays["STAY_HAS_PAID_CLAIMS"] & ~stays["STAY_HAS_RB_CODES"]

    dropped_ids = stays.loc[excluded, "STAY_ID"]
    if len(dropped_ids):
        logger.info(f"Excluded {len(dropped_ids)} unpaid stays without bed-day lines at {list(prefixes)}")

    return (
        islands[~islands["STAY_ID"].isin(dropped_ids)].reset_index(drop=True),
        stays[~excluded].reset_index(drop=True),
    )
