"""
Assembly of the two dashboard output tables.
"""
import logging
from typing import Optional
import pandas as pd

from .config import (
    DEMOGRAPHIC_COLUMNS, DEMOGRAPHIC_DEFAULTS, ENCOUNTER_CONFIG,
    HOSPITAL_VISIT_COLUMNS, STAY_DETAIL_COLUMNS, EncounterConfig
)
from .utils import ReportWindow, id_key

logger = logging.getLogger(__name__)

LINE_ORDER = ["DOS_FROM", "DOS_TO", "CLAIM_NUMBER", "WORKSHEET_NUMBER", "LINE_NUMBER"]

PRIOR_HOSP_COLUMN_MAP = {
    "DISCHARGED_TO_STAY": "HOSPITAL_TO_STAY",
    "PATIENT_CLASS": "LAST_HOSP_ENC_TYPE",
    "PAT_ENC_CSN_ID": "LAST_HOSP_CSN_ID",
    "HOSP_ADMSN_TIME": "LAST_HOSP_ADMSN_TIME",
    "HOSP_DISCH_TIME": "LAST_HOSP_DISCH_TIME",
    "DISCH_DEPT": "LAST_HOSP_DISCH_DEPT",
    "PRIMARY_DX_CODE": "DISCH_DX_CODE",
    "PRIMARY_DX_NAME": "DISCH_DX_NAME",
    "DISCH_DISPOSITION": "DISCH_DISPOSITION",
}


def yes_no(flag: pd.Series) -> pd.Series:
    """Map a boolean series to 'Yes'/'No' (missing counts as 'No')."""
    return flag.fillna(False).astype(bool).map({True: "Yes", False: "No"})


def _with_window(df: pd.DataFrame, window: ReportWindow) -> pd.DataFrame:
    for name, value in window.as_columns().items():
        df[name] = value
    return df


def merge_demographics(lines: pd.DataFrame, demographics: Optional[pd.DataFrame]) -> pd.DataFrame:
    """
    Join care team details by PAT_ID, filling the dashboard defaults where absent.

    Args:
        lines: Stay detail rows with PAT_ID
        demographics: Patient demographics with DEMOGRAPHIC_COLUMNS

    Returns:
        Rows with PCP and medical home columns populated
    """
    logger.info("Merging demographics")

    if demographics is not None and not demographics.empty:
        demo = demographics[DEMOGRAPHIC_COLUMNS].dropna(subset=["PAT_ID"]).copy()
        demo["PAT_ID"] = id_key(demo["PAT_ID"])
        demo = demo.drop_duplicates("PAT_ID")
        lines = lines.merge(demo, on="PAT_ID", how="left")

    for column, default in DEMOGRAPHIC_DEFAULTS.items():
        if column not in lines.columns:
            lines[column] = default
        else:
            lines[column] = lines[column].fillna(default)
    return lines


def merge_prior_hospitalizations(
    lines: pd.DataFrame,
    prior: pd.DataFrame,
    config: EncounterConfig = None
) -> pd.DataFrame:
    """
    Attach the most recent hospitalization that discharged the patient to the stay.

    Outpatient-class encounters (urgent care) read as 'Urgent Care'; stays
    with no prior hospitalization read as 'N/A' and HOSPITAL_TO_STAY 'No'.

    Args:
        lines: Stay detail rows with STAY_ID
        prior: One row per stay from prior_hospitalizations
        config: Encounter configuration (uses default if None)

    Returns:
        Rows with the LAST_HOSP_* and discharge columns
    """
    config = config or ENCOUNTER_CONFIG

    p = prior[["STAY_ID"] + list(PRIOR_HOSP_COLUMN_MAP)].rename(columns=PRIOR_HOSP_COLUMN_MAP)
    lines = lines.merge(p, on="STAY_ID", how="left")

    lines["HOSPITAL_TO_STAY"] = yes_no(lines["HOSPITAL_TO_STAY"])
    enc_type = lines["LAST_HOSP_ENC_TYPE"]
    lines["LAST_HOSP_ENC_TYPE"] = (
        enc_type.where(enc_type != config.outpatient_class_name, config.urgent_care_label)
        .fillna("N/A")
    )
    return lines


def build_stay_detail(
    islands: pd.DataFrame,
    stays: pd.DataFrame,
    prior: pd.DataFrame,
    window: ReportWindow,
    demographics: Optional[pd.DataFrame] = None,
    config: EncounterConfig = None
) -> pd.DataFrame:
    """
    Build the stay detail output: one row per surviving charge line.

    Args:
        islands: Charge lines with STAY_ID
        stays: One row per stay after LOS exceptions and exclusions
        prior: Prior hospitalization per stay
        window: Report coverage window
        demographics: Patient demographics / care team
        config: Encounter configuration (uses default if None)

    Returns:
        DataFrame with STAY_DETAIL_COLUMNS
    """
    logger.info("Building stay detail output")

    stay_cols = stays[[
        "STAY_ID", "STAY_BEGIN_DATE", "STAY_END_DATE",
        "LENGTH_OF_STAY", "TOTAL_DOS", "STAY_HAS_PAID_CLAIMS"
    ]]
    lines = islands.merge(stay_cols, on="STAY_ID", how="inner")

    lines["PAT_MRN_ID"] = lines["PAT_MRN_ID"].fillna(lines["MEMBER_NUMBER"])
    lines["STAY_HAS_PAID_CLAIMS_YN"] = yes_no(lines["STAY_HAS_PAID_CLAIMS"])

    lines = lines.sort_values(["STAY_ID"] + LINE_ORDER).reset_index(drop=True)
    lines["CLAIM_LINE_IN_STAY"] = lines.groupby("STAY_ID").cumcount() + 1

    paid = pd.to_numeric(lines["PAID_AMOUNT"], errors="coerce").fillna(0) > 0
    lines["PAID_CLAIM_LINE_SEQ"] = (
        lines[paid].groupby("STAY_ID").cumcount() + 1
    ).reindex(lines.index).astype("Int64")

    lines = merge_demographics(lines, demographics)
    lines = merge_prior_hospitalizations(lines, prior, config)
    lines = _with_window(lines, window)

    return lines[STAY_DETAIL_COLUMNS]


def build_hospital_visit_detail(visits: pd.DataFrame, window: ReportWindow) -> pd.DataFrame:
    """
    Build the hospital visits output: one row per admitted-from-stay encounter.

    Args:
        visits: Output of find_readmissions
        window: Report coverage window

    Returns:
        DataFrame with HOSPITAL_VISIT_COLUMNS
    """
    logger.info("Building hospital visits output")

    out = visits.copy()
    out["DISCHARGED_TO_STAY"] = yes_no(out["DISCHARGED_TO_STAY"])
    out["ADMIT_FROM_STAY"] = yes_no(out["ADMIT_FROM_STAY"])
    for column in HOSPITAL_VISIT_COLUMNS:
        if column not in out.columns:
            out[column] = None

    out = _with_window(out, window)
    return (
        out[HOSPITAL_VISIT_COLUMNS]
        .sort_values(["PAT_NAME", "PAT_ENC_CSN_ID"])
        .reset_index(drop=True)
    )
