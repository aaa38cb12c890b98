"""
Stay consolidation for the Post-acute Care Dashboard pipeline.

Claim lines for the same patient and facility whose service dates overlap or
touch (within the adjacency tolerance) are grouped into stays. Grouping is a
gaps-and-islands scan followed by a correction pass that re-joins stays the
scan split apart.
"""
import logging
from typing import Optional, Tuple
import numpy as np
import pandas as pd

from .config import BUSINESS_RULES, BusinessRulesConfig
from .utils import day_ordinal

logger = logging.getLogger(__name__)

PARTITION = ["PAT_KEY", "PROVIDER_NAME"]
ISLAND_STRATEGIES = ("running_end", "previous_row")


def _partition_ids(df: pd.DataFrame) -> pd.Series:
    """Integer id per (patient, facility), null keys included."""
    return df.groupby(PARTITION, dropna=False, sort=False).ngroup()


def assign_islands(
    charges: pd.DataFrame,
    strategy: str = None,
    adjacency_days: int = None
) -> pd.DataFrame:
    """
    Assign an initial STAY_ID to every charge line.

    Lines are ordered by (PAT_KEY, PROVIDER_NAME, DOS_FROM, DOS_TO, CHARGE_ID).
    A line opens a new island unless it touches the reference extent:

    - "previous_row": either endpoint lies within the immediately preceding
      line's [DOS_FROM, DOS_TO + adjacency_days]
    - "running_end": DOS_FROM is no later than the running maximum DOS_TO of
      all earlier lines in the partition, plus adjacency_days

    Island ids are a running count over the whole ordered frame, so they are
    global and increase with patient, facility and start date.

    Args:
        charges: Charge lines
        strategy: "running_end" or "previous_row" (defaults to business rules)
        adjacency_days: Gap in days still treated as continuous (defaults to business rules)

    Returns:
        Charge lines, ordered, with STAY_ID

    Raises:
        ValueError: If strategy is not recognized
    """
    strategy = strategy or BUSINESS_RULES.island_strategy
    if adjacency_days is None:
        adjacency_days = BUSINESS_RULES.adjacency_days

    if strategy not in ISLAND_STRATEGIES:
        raise ValueError(f"Invalid island strategy '{strategy}'. Must be one of: {list(ISLAND_STRATEGIES)}")

    df = (
        charges.sort_values(PARTITION + ["DOS_FROM", "DOS_TO", "CHARGE_ID"])
        .reset_index(drop=True)
    )
    if df.empty:
        df["STAY_ID"] = pd.Series(dtype="int64")
        return df

    part = _partition_ids(df)
    start = day_ordinal(df["DOS_FROM"])
    end = day_ordinal(df["DOS_TO"])

    if strategy == "previous_row":
        prev_start = start.groupby(part).shift(1)
        prev_end = end.groupby(part).shift(1)
        touches = (
            ((start >= prev_start) & (start <= prev_end + adjacency_days))
            | ((end >= prev_start) & (end <= prev_end + adjacency_days))
        )
    else:
        running_end = end.groupby(part).cummax()
        prev_running_end = running_end.groupby(part).shift(1)
        touches = start <= prev_running_end + adjacency_days

    df["STAY_ID"] = (~touches).cumsum().astype("int64")
    logger.info(f"Assigned {df['STAY_ID'].nunique()} initial stays using '{strategy}' grouping")
    return df


def _stay_extents(islands: pd.DataFrame) -> pd.DataFrame:
    """Begin/end per stay ordered by partition and begin date."""
    ext = (
        islands.groupby("STAY_ID", sort=False)
        .agg(
            PAT_KEY=("PAT_KEY", "first"),
            PROVIDER_NAME=("PROVIDER_NAME", "first"),
            STAY_BEGIN_DATE=("DOS_FROM", "min"),
            STAY_END_DATE=("DOS_TO", "max"),
        )
        .reset_index()
        .sort_values(PARTITION + ["STAY_BEGIN_DATE", "STAY_ID"])
        .reset_index(drop=True)
    )
    ext["PART"] = _partition_ids(ext)
    return ext


def renumber_stays(islands: pd.DataFrame) -> pd.DataFrame:
    """Renumber STAY_ID densely (1..N) in (patient, facility, begin date) order."""
    ext = _stay_extents(islands)
    mapping = pd.Series(np.arange(1, len(ext) + 1), index=ext["STAY_ID"].values)

    out = islands.copy()
    out["STAY_ID"] = out["STAY_ID"].map(mapping).astype("int64")
    return out


def _split_pairs(ext: pd.DataFrame, adjacency_days: int) -> pd.Series:
    """Map later stay id -> earlier stay id for consecutive stays that touch."""
    prev = ext.shift(1)
    touching = (
        (ext["PART"] == prev["PART"])
        & (ext["STAY_BEGIN_DATE"] <= prev["STAY_END_DATE"] + pd.Timedelta(days=adjacency_days))
    )
    return pd.Series(
        prev.loc[touching, "STAY_ID"].astype("int64").values,
        index=ext.loc[touching, "STAY_ID"].values
    )


def correct_split_stays(
    islands: pd.DataFrame,
    max_passes: Optional[int] = None,
    adjacency_days: int = None
) -> pd.DataFrame:
    """
    Re-join stays that the island scan split apart.

    Each pass finds consecutive stays (g, g+1) of the same patient and facility
    where begin(g+1) <= end(g) + adjacency_days and moves every line of g+1
    into g. All pairs of a pass are applied at once, so a chain of three or
    more split stays needs more than one pass. Begin and end dates follow the
    new membership (min DOS_FROM, max DOS_TO).

    Args:
        islands: Charge lines with STAY_ID
        max_passes: Pass limit; None repeats until no pair qualifies
        adjacency_days: Gap in days still treated as continuous (defaults to business rules)

    Returns:
        Charge lines with corrected, densely renumbered STAY_ID
    """
    if adjacency_days is None:
        adjacency_days = BUSINESS_RULES.adjacency_days

    df = renumber_stays(islands) if not islands.empty else islands.copy()
    passes = 0

    while not df.empty and (max_passes is None or passes < max_passes):
        pairs = _split_pairs(_stay_extents(df), adjacency_days)
        if pairs.empty:
            break

        passes += 1
        df["STAY_ID"] = df["STAY_ID"].map(pairs).fillna(df["STAY_ID"]).astype("int64")
        df = renumber_stays(df)
        logger.info(f"Split correction pass {passes}: merged {len(pairs)} stay pairs")

    logger.info(f"Split correction finished after {passes} passes")
    return df


def summarize_stays(islands: pd.DataFrame) -> pd.DataFrame:
    """
    Aggregate charge lines to one row per stay.

    LENGTH_OF_STAY counts billed units on bed-day lines that were paid.
    TOTAL_DOS is the calendar span of the stay.

    Args:
        islands: Charge lines with STAY_ID

    Returns:
        DataFrame with one row per STAY_ID
    """
    df = islands.copy()
    units = pd.to_numeric(df["UNITS"], errors="coerce").fillna(0)
    paid = pd.to_numeric(df["PAID_AMOUNT"], errors="coerce").fillna(0)
    bed_day = df["IS_BED_DAY_CODE"].astype(bool)

    df["_PAID"] = paid
    df["_BED_DAY"] = bed_day
    df["_RB_PAID_UNITS"] = units.where(bed_day & (paid > 0), 0)

    stays = (
        df.groupby("STAY_ID")
        .agg(
            PAT_KEY=("PAT_KEY", "first"),
            PAT_ID=("PAT_ID", "first"),
            PAT_MRN_ID=("PAT_MRN_ID", "first"),
            PAT_NAME=("PAT_NAME", "first"),
            PROVIDER_NAME=("PROVIDER_NAME", "first"),
            STAY_BEGIN_DATE=("DOS_FROM", "min"),
            STAY_END_DATE=("DOS_TO", "max"),
            TOTAL_PAID_AMOUNT=("_PAID", "sum"),
            STAY_HAS_RB_CODES=("_BED_DAY", "any"),
            LENGTH_OF_STAY=("_RB_PAID_UNITS", "sum"),
        )
        .reset_index()
    )

    stays["TOTAL_DOS"] = (stays["STAY_END_DATE"] - stays["STAY_BEGIN_DATE"]).dt.days + 1
    stays["STAY_HAS_PAID_CLAIMS"] = stays["TOTAL_PAID_AMOUNT"] > 0
    return stays


def count_touching_stay_pairs(stays: pd.DataFrame, adjacency_days: int = None) -> int:
    """
    Count stays that still overlap or touch an earlier stay of the same patient and facility.

    Zero after a successful consolidation.

    Args:
        stays: One row per stay with STAY_BEGIN_DATE / STAY_END_DATE
        adjacency_days: Gap in days still treated as continuous (defaults to business rules)

    Returns:
        Number of touching stays
    """
    if adjacency_days is None:
        adjacency_days = BUSINESS_RULES.adjacency_days
    if stays.empty:
        return 0

    s = stays.sort_values(PARTITION + ["STAY_BEGIN_DATE", "STAY_ID"]).reset_index(drop=True)
    part = _partition_ids(s)
    begin = day_ordinal(s["STAY_BEGIN_DATE"])
    end = day_ordinal(s["STAY_END_DATE"])

    prev_running_end = end.groupby(part).cummax().groupby(part).shift(1)
    return int((begin <= prev_running_end + adjacency_days).sum())


def merge_stays(
    charges: pd.DataFrame,
    rules: BusinessRulesConfig = None
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Group charge lines into stays.

    Runs the island scan, the split correction and the aggregate recompute
    with the strategy, pass limit and adjacency tolerance from the rules.

    Args:
        charges: Repaired charge lines
        rules: Business rules (uses default if None)

    Returns:
        Tuple of (charge lines with STAY_ID, one row per stay)
    """
    rules = rules or BUSINESS_RULES

    islands = assign_islands(
        charges, strategy=rules.island_strategy, adjacency_days=rules.adjacency_days
    )
    islands = correct_split_stays(
        islands,
        max_passes=rules.max_split_correction_passes,
        adjacency_days=rules.adjacency_days
    )
    stays = summarize_stays(islands)

    remaining = count_touching_stay_pairs(stays, adjacency_days=rules.adjacency_days)
    if remaining:
        logger.warning(f"{remaining} stays still touch an earlier stay after split correction")

    logger.info(f"Consolidated {len(islands)} charge lines into {len(stays)} stays")
    return islands, stays
