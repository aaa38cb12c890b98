"""
Date of service repairs applied to charge lines before stays are built.
"""
import logging
from typing import List
import pandas as pd

from .config import (
    BUSINESS_RULES, MANUAL_CORRECTIONS,
    BusinessRulesConfig, ContiguousGapRepair
)
from .utils import id_key

logger = logging.getLogger(__name__)


def repair_single_dos(charges: pd.DataFrame, rules: BusinessRulesConfig = None) -> pd.DataFrame:
    """
    Expand bed-day lines billed on a single date of service for several days.

    A bed-day line with DOS_FROM == DOS_TO and more than one unit gets
    DOS_TO = DOS_FROM + units - 1 and LOS = units. Lines whose remark says the
    date range was already rejected against the units, or that they duplicate
    earlier charges, are left alone.

    Args:
        charges: Charge lines
        rules: Business rules (uses default if None)

    Returns:
        Charge lines with single-DOS bed-day lines expanded
    """
    rules = rules or BUSINESS_RULES
    df = charges.copy()

    units = pd.to_numeric(df["UNITS"], errors="coerce").fillna(0).astype(int)
    mask = (
        df["IS_BED_DAY_CODE"].astype(bool)
        & (df["DOS_FROM"] == df["DOS_TO"])
        & (units > 1)
        & ~df["REMARK"].isin(rules.single_dos_excluded_remarks)
    )

    df.loc[mask, "DOS_TO"] = df.loc[mask, "DOS_FROM"] + pd.to_timedelta(units[mask] - 1, unit="D")
    df.loc[mask, "LOS"] = units[mask]

    logger.info(f"Expanded {int(mask.sum())} single date of service bed-day lines")
    return df


def repair_contiguous_gaps(
    charges: pd.DataFrame,
    repairs: List[ContiguousGapRepair] = None
) -> pd.DataFrame:
    """
    Chain a facility's single-day lines for one patient into contiguous spans.

    For each configured repair, the matching lines are ordered by DOS_FROM and
    each line's DOS_TO is moved to the day before the next line's DOS_FROM.
    When the next line starts the same day, DOS_TO becomes DOS_FROM. The last
    line keeps its DOS_TO. LOS is recomputed from the new span.

    Args:
        charges: Charge lines
        repairs: Repair cases (uses the manual corrections list if None)

    Returns:
        Charge lines with the listed cases repaired
    """
    if repairs is None:
        repairs = MANUAL_CORRECTIONS.contiguous_gap_repairs

    df = charges.copy()
    provider = df["PROVIDER_NAME"].astype(str).str.upper()
    mrn = id_key(df["PAT_MRN_ID"])

    for repair in repairs:
        mask = (
            (provider == repair.provider_name.upper())
            & (mrn == str(repair.pat_mrn_id))
            & (df["DOS_FROM"] >= pd.Timestamp(repair.window_start))
            & (df["DOS_FROM"] <= pd.Timestamp(repair.window_end))
        )
        if not mask.any():
            continue

        lines = df.loc[mask].sort_values(["DOS_FROM", "CHARGE_ID"])
        next_from = lines["DOS_FROM"].shift(-1)

        new_to = next_from - pd.Timedelta(days=1)
        new_to = new_to.mask(next_from == lines["DOS_FROM"], lines["DOS_FROM"])
        new_to = new_to.fillna(lines["DOS_TO"])

        df.loc[lines.index, "DOS_TO"] = new_to
        df.loc[lines.index, "LOS"] = (new_to - lines["DOS_FROM"]).dt.days + 1

        logger.info(
            f"Re-chained {len(lines)} lines for {repair.provider_name} "
            f"between {repair.window_start} and {repair.window_end}"
        )

    return df
