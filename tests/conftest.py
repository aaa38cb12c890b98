"""
Shared fixtures: frame factories for claim rows, charge lines and encounters.
"""
from datetime import date, datetime
import pandas as pd
import pytest

from PACD.utils import ReportWindow


RAW_CLAIM_DEFAULTS = {
    "CHKGRP": "SNF",
    "TIN": "751234567",
    "CLAIM_NUMBER": "C1",
    "WORKSHEET_NUMBER": 1,
    "LINE_NUMBER": 1,
    "LINE_COUNTER": 1,
    "LINE_DUPLICATE_COUNTER": 0,
    "PROVIDER_ID": 6401,
    "MEMBER_NUMBER": "34808675",
    "LAST_NAME": "DOE",
    "FIRST_NAME": "JANE",
    "BENEFIT_PLAN": "JPS CONNECTION",
    "DOS_FROM": "2023-01-01",
    "DOS_TO": "2023-01-05",
    "DX": "I10",
    "PROC_CODE": "U0120",
    "PROC_DESCRIPTION": "ROOM AND BOARD SEMI-PRIVATE",
    "UNITS": 5,
    "UNIT_RATE": 200.0,
    "TOTAL_CHARGES": 1000.0,
    "PAID_AMOUNT": 1000.0,
    "REMARK": None,
}

CHARGE_LINE_DEFAULTS = {
    "IPA": "SNF",
    "TIN": "751234567",
    "WORKSHEET_NUMBER": 1,
    "LINE_NUMBER": 1,
    "PROVIDER_ID": "6401",
    "PROVIDER_NAME": "Remarkable Healthcare of Fort Worth",
    "PARENT_FACILITY": "Remarkable Healthcare of Fort Worth",
    "MEMBER_NUMBER": "34808675",
    "MEMBER_LAST_NAME": "DOE",
    "MEMBER_FIRST_NAME": "JANE",
    "BENEFIT_PLAN": "JPS CONNECTION",
    "PAT_ID": "Z1",
    "PAT_MRN_ID": "34808675",
    "PAT_NAME": "DOE, JANE",
    "PAT_KEY": "34808675",
    "DOS_FROM": "2023-01-01",
    "DOS_TO": "2023-01-05",
    "DX": "I10",
    "PROC_CODE": "U0120",
    "PROC_DESCRIPTION": "ROOM AND BOARD SEMI-PRIVATE",
    "UNITS": 5,
    "UNIT_RATE": 200.0,
    "TOTAL_CHARGES": 1000.0,
    "PAID_AMOUNT": 1000.0,
    "REMARK": None,
    "IS_BED_DAY_CODE": True,
}

ENCOUNTER_DEFAULTS = {
    "PAT_ID": "Z1",
    "PAT_ENC_CSN_ID": 1,
    "HSP_ACCOUNT_ID": 900,
    "ADT_PAT_CLASS_C": 101,
    "ADT_PATIENT_STAT_C": 3,
    "ADMIT_CONF_STAT_C": 1,
    "HOSP_ADMSN_TIME": "2023-03-05 08:00",
    "INP_ADM_DATE": "2023-03-05",
    "HOSP_DISCH_TIME": "2023-03-08 14:00",
    "ADMIT_DEPT": "JPS EMERGENCY",
    "DISCH_DEPT": "JPS 5 WEST",
    "DISCH_DEPT_ID": 10100,
    "PATIENT_CLASS": "Inpatient",
    "DISCH_DISPOSITION": "Home or Self Care",
    "PRIMARY_DX_CODE": "J18.9",
    "PRIMARY_DX_NAME": "Pneumonia, unspecified organism",
}


@pytest.fixture
def make_raw_claims():
    """Build a raw claims feed frame from partial row dicts."""
    def _make(rows):
        return pd.DataFrame([{**RAW_CLAIM_DEFAULTS, **row} for row in rows])
    return _make


@pytest.fixture
def make_charges():
    """
    Build charge lines as they leave extraction and provider normalization.

    CHARGE_ID follows row order; each row gets its own claim number unless given.
    """
    def _make(rows):
        records = []
        for i, row in enumerate(rows, start=1):
            record = {**CHARGE_LINE_DEFAULTS, "CHARGE_ID": i, "CLAIM_NUMBER": f"C{i}", **row}
            records.append(record)

        df = pd.DataFrame(records)
        df["DOS_FROM"] = pd.to_datetime(df["DOS_FROM"])
        df["DOS_TO"] = pd.to_datetime(df["DOS_TO"])
        df["LOS"] = (df["DOS_TO"] - df["DOS_FROM"]).dt.days + 1
        df["CLAIM_LINE_SEQ"] = df.groupby("CLAIM_NUMBER").cumcount() + 1
        return df
    return _make


@pytest.fixture
def make_encounters():
    """Build a hospital encounter feed frame from partial row dicts."""
    def _make(rows):
        return pd.DataFrame([{**ENCOUNTER_DEFAULTS, **row} for row in rows])
    return _make


@pytest.fixture
def make_stays():
    """Build one-row-per-stay frames with the columns encounter linking reads."""
    def _make(rows):
        records = []
        for i, row in enumerate(rows, start=1):
            records.append({
                "STAY_ID": i,
                "PAT_ID": "Z1",
                "PAT_MRN_ID": "34808675",
                "PAT_NAME": "DOE, JANE",
                **row,
            })
        df = pd.DataFrame(records)
        df["STAY_BEGIN_DATE"] = pd.to_datetime(df["STAY_BEGIN_DATE"])
        df["STAY_END_DATE"] = pd.to_datetime(df["STAY_END_DATE"])
        return df
    return _make


@pytest.fixture
def report_window():
    return ReportWindow(
        start_date=date(2023, 1, 1),
        end_date=date(2023, 12, 31),
        run_date=datetime(2024, 1, 2, 6, 0),
    )
