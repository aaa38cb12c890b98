"""
Hospital encounter linkage and readmission detection.
"""
import logging
from typing import Iterable
import pandas as pd

from .config import ENCOUNTER_CONFIG, ENCOUNTER_DESCRIPTOR_COLUMNS, READMIT_COLUMNS, EncounterConfig
from .utils import id_key, normalize_dates

logger = logging.getLogger(__name__)

STAY_LINK_COLUMNS = ["STAY_ID", "PAT_ID", "PAT_MRN_ID", "PAT_NAME", "STAY_BEGIN_DATE", "STAY_END_DATE"]
ENCOUNTER_INPUT_COLUMNS = (
    ["PAT_ID", "ADT_PAT_CLASS_C", "ADT_PATIENT_STAT_C", "ADMIT_CONF_STAT_C"]
    + ENCOUNTER_DESCRIPTOR_COLUMNS
    + ["READMIT_RISK_SCORE", "LACE_PLUS_SCORE"]
)


def filter_qualifying_encounters(
    encounters: pd.DataFrame,
    config: EncounterConfig = None
) -> pd.DataFrame:
    """
    Keep inpatient, emergency, observation and urgent care encounters.

    Outpatient-class encounters only qualify when discharged from an urgent
    care department. Encounters flagged as hospital outpatient visits are
    dropped. Calendar admission and discharge dates are derived.

    Args:
        encounters: Hospital encounter feed
        config: Encounter configuration (uses default if None)

    Returns:
        Qualifying encounters with HOSP_ADMSN_DATE and HOSP_DISCH_DATE
    """
    config = config or ENCOUNTER_CONFIG

    df = encounters.copy()
    for column in ENCOUNTER_INPUT_COLUMNS:
        if column not in df.columns:
            df[column] = None
    df["PAT_ID"] = id_key(df["PAT_ID"])

    pat_class = pd.to_numeric(df["ADT_PAT_CLASS_C"], errors="coerce")
    status = pd.to_numeric(df["ADT_PATIENT_STAT_C"], errors="coerce")
    dept = pd.to_numeric(df["DISCH_DEPT_ID"], errors="coerce")

    qualifies = (
        (
            pat_class.isin(config.acute_class_codes)
            | ((pat_class == config.outpatient_class_code) & dept.isin(config.urgent_care_dept_ids))
        )
        & (status.isna() | (status != config.excluded_patient_status))
    )
    df = df[qualifies].copy()

    df["HOSP_ADMSN_TIME"] = pd.to_datetime(df["HOSP_ADMSN_TIME"])
    df["HOSP_DISCH_TIME"] = pd.to_datetime(df["HOSP_DISCH_TIME"])
    df["HOSP_ADMSN_DATE"] = df["HOSP_ADMSN_TIME"].dt.normalize()
    df["HOSP_DISCH_DATE"] = df["HOSP_DISCH_TIME"].dt.normalize()
    df = normalize_dates(df, ["INP_ADM_DATE"])

    logger.info(f"{len(df)} of {len(encounters)} hospital encounters qualify")
    return df


def link_encounters(
    stays: pd.DataFrame,
    encounters: pd.DataFrame,
    config: EncounterConfig = None
) -> pd.DataFrame:
    """
    Pair each stay with the patient's encounters around it.

    An encounter is a candidate when it was discharged no earlier than
    days_before_stay before the stay began and admitted no later than
    days_after_stay after the stay ended. Each candidate is classified:

    - DISCHARGED_TO_STAY: discharged within [begin - days_before_stay, begin]
    - ADMIT_FROM_STAY: admitted within (begin, end + grace days]

    Args:
        stays: One row per stay
        encounters: Qualifying encounters
        config: Encounter configuration (uses default if None)

    Returns:
        One row per (stay, candidate encounter)
    """
    config = config or ENCOUNTER_CONFIG
    logger.info("Linking hospital encounters to stays")

    s = stays[STAY_LINK_COLUMNS].dropna(subset=["PAT_ID"]).copy()
    s["PAT_ID"] = id_key(s["PAT_ID"])

    enc = encounters.drop(columns=[c for c in STAY_LINK_COLUMNS if c != "PAT_ID"], errors="ignore")
    links = s.merge(enc, on="PAT_ID", how="inner")

    before = pd.Timedelta(days=config.days_before_stay)
    after = pd.Timedelta(days=config.days_after_stay)
    grace = pd.Timedelta(days=config.admit_from_stay_grace_days)

    links = links[
        (links["HOSP_DISCH_DATE"] >= links["STAY_BEGIN_DATE"] - before)
        & (links["HOSP_ADMSN_DATE"] <= links["STAY_END_DATE"] + after)
    ].copy()

    links["DISCHARGED_TO_STAY"] = (
        (links["HOSP_DISCH_DATE"] >= links["STAY_BEGIN_DATE"] - before)
        & (links["HOSP_DISCH_DATE"] <= links["STAY_BEGIN_DATE"])
    )
    links["ADMIT_FROM_STAY"] = (
        (links["HOSP_ADMSN_DATE"] > links["STAY_BEGIN_DATE"])
        & (links["HOSP_ADMSN_DATE"] <= links["STAY_END_DATE"] + grace)
    )

    logger.info(
        f"Linked {len(links)} stay/encounter pairs: "
        f"{int(links['DISCHARGED_TO_STAY'].sum())} discharged to stay, "
        f"{int(links['ADMIT_FROM_STAY'].sum())} admitted from stay"
    )
    return links.reset_index(drop=True)


def prior_hospitalizations(links: pd.DataFrame) -> pd.DataFrame:
    """Most recent discharged-to-stay encounter per stay (latest discharge time, then highest CSN)."""
    prior = links[links["DISCHARGED_TO_STAY"]]
    return (
        prior.sort_values(
            ["STAY_ID", "HOSP_DISCH_TIME", "PAT_ENC_CSN_ID"],
            ascending=[True, False, False]
        )
        .drop_duplicates("STAY_ID")
        .reset_index(drop=True)
    )


def find_readmissions(
    links: pd.DataFrame,
    excluded_dispositions: Iterable[str] = (),
    config: EncounterConfig = None
) -> pd.DataFrame:
    """
    Build the admitted-from-stay visits and their inpatient readmissions.

    Each admitted-from-stay encounter keeps only its link to the most recent
    stay (latest begin date). Inpatient-class visits whose discharge
    disposition is not excluded are index admissions. A readmission is the
    earliest other admitted-from-stay encounter of the same patient with an
    inpatient admission date, admitted after the index discharge and no later
    than readmit_window_days after it, whose admission was not pending or
    canceled. Flags are 1 when the day difference is within each threshold.

    Args:
        links: Stay/encounter pairs from link_encounters
        excluded_dispositions: Index discharge dispositions that never count
        config: Encounter configuration (uses default if None)

    Returns:
        One row per admitted-from-stay encounter with READMIT_* columns,
        DAYS_TO_NEXT_INP_ADM and INP_ADM_<N>_DAY_READM_FLAG
    """
    config = config or ENCOUNTER_CONFIG
    logger.info("Finding inpatient readmissions")

    visits = (
        links[links["ADMIT_FROM_STAY"]]
        .sort_values(["PAT_ENC_CSN_ID", "STAY_BEGIN_DATE", "STAY_ID"], ascending=[True, False, False])
        .drop_duplicates("PAT_ENC_CSN_ID")
        .reset_index(drop=True)
    )

    index_admits = visits[
        (visits["PATIENT_CLASS"] == config.index_patient_class)
        & ~visits["DISCH_DISPOSITION"].isin(list(excluded_dispositions))
    ][["PAT_ENC_CSN_ID", "PAT_ID", "HOSP_DISCH_TIME", "HOSP_DISCH_DATE"]]

    conf_status = pd.to_numeric(visits["ADMIT_CONF_STAT_C"], errors="coerce")
    pool = visits[
        visits["INP_ADM_DATE"].notna()
        & ~conf_status.isin(config.excluded_admit_conf_status)
    ]
    pool = pool[["PAT_ID", "HOSP_ADMSN_DATE"] + READMIT_COLUMNS].rename(
        columns={c: f"READMIT_{c}" for c in ["HOSP_ADMSN_DATE"] + READMIT_COLUMNS}
    )

    window = pd.Timedelta(days=config.readmit_window_days)
    candidates = index_admits.merge(pool, on="PAT_ID", how="inner")
    candidates = candidates[
        (candidates["READMIT_HOSP_ADMSN_TIME"] > candidates["HOSP_DISCH_TIME"])
        & (candidates["READMIT_HOSP_ADMSN_DATE"] <= candidates["HOSP_DISCH_DATE"] + window)
    ]

    readmits = (
        candidates.sort_values(["PAT_ENC_CSN_ID", "READMIT_HOSP_ADMSN_TIME", "READMIT_PAT_ENC_CSN_ID"])
        .drop_duplicates("PAT_ENC_CSN_ID")
        .copy()
    )
    readmits["DAYS_TO_NEXT_INP_ADM"] = (
        readmits["READMIT_HOSP_ADMSN_DATE"] - readmits["HOSP_DISCH_DATE"]
    ).dt.days
    readmits = readmits.drop(columns=["PAT_ID", "HOSP_DISCH_TIME", "HOSP_DISCH_DATE", "READMIT_HOSP_ADMSN_DATE"])

    visits = visits.merge(readmits, on="PAT_ENC_CSN_ID", how="left")
    for days in config.readmit_flag_days:
        visits[f"INP_ADM_{days}_DAY_READM_FLAG"] = (visits["DAYS_TO_NEXT_INP_ADM"] <= days).astype(int)

    logger.info(
        f"{len(visits)} admitted-from-stay visits, "
        f"{int(visits['DAYS_TO_NEXT_INP_ADM'].notna().sum())} with a readmission"
    )
    return visits
