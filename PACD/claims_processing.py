"""
Claim line extraction for the Post-acute Care Dashboard pipeline.
"""
import logging
from typing import Iterable, Optional
import numpy as np
import pandas as pd

from .config import (
    BUSINESS_RULES, MANUAL_CORRECTIONS, CLAIMS_COLUMN_MAP,
    BusinessRulesConfig, ManualCorrectionsConfig
)
from .utils import id_key, normalize_dates

logger = logging.getLogger(__name__)

LINE_KEY = ["CLAIM_NUMBER", "WORKSHEET_NUMBER", "LINE_NUMBER"]


def normalize_proc_code(codes: pd.Series) -> pd.Series:
    """
    Restore the dropped leading zero of short UB revenue codes.

    'U' followed by exactly three digits becomes 'U0' followed by those digits
    (U120 -> U0120). Every other code is returned unchanged.

    Args:
        codes: Procedure code series

    Returns:
        Normalized procedure code series
    """
    text = codes.astype(object).where(codes.isna(), codes.astype(str).str.strip())
    fixed = text.str.replace(r"^U(\d{3})$", r"U0\1", regex=True)
    return fixed.where(text.notna(), codes)


def keep_latest_revision(raw: pd.DataFrame) -> pd.DataFrame:
    """Keep the rows carrying the highest LINE_COUNTER of each claim line."""
    max_counter = raw.groupby(LINE_KEY, dropna=False)["LINE_COUNTER"].transform("max")
    return raw[raw["LINE_COUNTER"] == max_counter]


def find_reversed_lines(raw: pd.DataFrame, retained_claims: Iterable[str]) -> pd.DataFrame:
    """
    Identify claim lines that were reversed.

    A line is reversed when any of its raw rows is a negative adjustment
    (LINE_DUPLICATE_COUNTER > 0 with negative UNITS). Claims on the retention
    list are never treated as reversed.

    Args:
        raw: Raw claim rows, all revisions
        retained_claims: Claim numbers kept despite being voided

    Returns:
        Distinct LINE_KEY rows of reversed lines
    """
    retained = id_key(raw["CLAIM_NUMBER"]).isin(list(retained_claims))
    reversal = (raw["LINE_DUPLICATE_COUNTER"] > 0) & (raw["UNITS"] < 0) & ~retained
    return raw.loc[reversal, LINE_KEY].drop_duplicates()


def _drop_lines(df: pd.DataFrame, lines: pd.DataFrame) -> pd.DataFrame:
    """Anti-join on LINE_KEY."""
    if lines.empty:
        return df
    marked = df.merge(lines, on=LINE_KEY, how="left", indicator=True)
    return marked[marked["_merge"] == "left_only"].drop(columns="_merge")


def apply_retained_claims(df: pd.DataFrame, retained_claims: Iterable[str]) -> pd.DataFrame:
    """
    Handle claims voided in the claims system although the stay happened.

    The negative adjustment lines are removed, and the remaining lines are
    kept with PAID_AMOUNT forced to 0 so the stay reads as unpaid.

    Args:
        df: Claim lines
        retained_claims: Claim numbers from the manual audit list

    Returns:
        Claim lines with the retained claims corrected
    """
    retained = id_key(df["CLAIM_NUMBER"]).isin(list(retained_claims))
    if not retained.any():
        return df

    df = df[~(retained & (df["UNITS"] < 0))].copy()
    retained = id_key(df["CLAIM_NUMBER"]).isin(list(retained_claims))
    df.loc[retained, "PAID_AMOUNT"] = 0
    logger.info(f"Retained {int(retained.sum())} voided claim lines with paid amount zeroed")
    return df


def attach_patients(df: pd.DataFrame, patients: Optional[pd.DataFrame]) -> pd.DataFrame:
    """
    Join patient identifiers by member number.

    PAT_KEY is the patient MRN, falling back to the member number when the
    member has no matching patient record.

    Args:
        df: Claim lines with MEMBER_NUMBER
        patients: Patient dimension (PAT_ID, PAT_MRN_ID, PAT_NAME)

    Returns:
        Claim lines with PAT_ID, PAT_MRN_ID, PAT_NAME and PAT_KEY
    """
    df = df.drop(columns=["PAT_ID", "PAT_MRN_ID", "PAT_NAME"], errors="ignore")
    df["MEMBER_NUMBER"] = id_key(df["MEMBER_NUMBER"])

    if patients is None or patients.empty:
        df["PAT_ID"] = None
        df["PAT_MRN_ID"] = None
        df["PAT_NAME"] = None
    else:
        pat = patients[["PAT_ID", "PAT_MRN_ID", "PAT_NAME"]].dropna(subset=["PAT_MRN_ID"]).copy()
        pat["PAT_MRN_ID"] = id_key(pat["PAT_MRN_ID"])
        pat = pat.drop_duplicates("PAT_MRN_ID")
        df = df.merge(pat, left_on="MEMBER_NUMBER", right_on="PAT_MRN_ID", how="left")
        df["PAT_ID"] = id_key(df["PAT_ID"])

    df["PAT_KEY"] = df["PAT_MRN_ID"].fillna(df["MEMBER_NUMBER"])
    return df


def extract_charge_lines(
    raw: pd.DataFrame,
    bed_day_codes: Iterable[str],
    patients: Optional[pd.DataFrame] = None,
    rules: BusinessRulesConfig = None,
    corrections: ManualCorrectionsConfig = None
) -> pd.DataFrame:
    """
    Reduce raw claim rows to one current, non-reversed row per claim line.

    Args:
        raw: Raw claim feed rows (all revisions and adjustments)
        bed_day_codes: Procedure codes whose units count bed days
        patients: Patient dimension used to resolve PAT_ID / PAT_MRN_ID
        rules: Business rules (uses default if None)
        corrections: Manual corrections (uses default if None)

    Returns:
        Charge lines with CHARGE_ID, CLAIM_LINE_SEQ, LOS and IS_BED_DAY_CODE
    """
    rules = rules or BUSINESS_RULES
    corrections = corrections or MANUAL_CORRECTIONS
    logger.info(f"Extracting charge lines from {len(raw)} raw claim rows")

    raw = raw.rename(columns=CLAIMS_COLUMN_MAP)
    raw = normalize_dates(raw, ["DOS_FROM", "DOS_TO"])

    reversed_lines = find_reversed_lines(raw, corrections.retained_voided_claims)

    df = keep_latest_revision(raw)
    df = df[df["IPA"].isin(rules.claim_categories)]

    members = id_key(df["MEMBER_NUMBER"])
    df = df[members.notna() & ~members.isin(rules.sentinel_member_numbers)]
    df = df[~df["REMARK"].isin(rules.duplicate_claim_remarks)]

    before = len(df)
    df = _drop_lines(df, reversed_lines)
    logger.info(f"Dropped {before - len(df)} reversed claim rows")

    df = df.copy()
    df["PROC_CODE"] = normalize_proc_code(df["PROC_CODE"])
    df["IS_BED_DAY_CODE"] = df["PROC_CODE"].isin(set(bed_day_codes))

    df = apply_retained_claims(df, corrections.retained_voided_claims)

    # One row per claim line; the latest adjustment wins
    df = (
        df.sort_values(LINE_KEY + ["LINE_DUPLICATE_COUNTER"], ascending=[True, True, True, False])
        .drop_duplicates(LINE_KEY, keep="first")
    )

    df = attach_patients(df, patients)

    df = df.sort_values(LINE_KEY).reset_index(drop=True)
    df["CHARGE_ID"] = np.arange(1, len(df) + 1)
    df["CLAIM_LINE_SEQ"] = df.groupby("CLAIM_NUMBER").cumcount() + 1
    df["LOS"] = (df["DOS_TO"] - df["DOS_FROM"]).dt.days + 1

    logger.info(f"Extracted {len(df)} charge lines")
    return df
