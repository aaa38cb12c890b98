import pandas as pd
import pytest

from PACD.config import (
    BusinessRulesConfig, EncounterConfig, STAY_DETAIL_COLUMNS, HOSPITAL_VISIT_COLUMNS,
    ENCOUNTER_DESCRIPTOR_COLUMNS, READMIT_COLUMNS
)
from PACD.stays import merge_stays
from PACD.encounters import (
    filter_qualifying_encounters, link_encounters, prior_hospitalizations, find_readmissions
)
from PACD.assembly import build_stay_detail, build_hospital_visit_detail, yes_no


@pytest.fixture
def stay_lines(make_charges):
    charges = make_charges([
        {"DOS_FROM": "2023-03-01", "DOS_TO": "2023-03-05", "PAID_AMOUNT": 500.0},
        {"DOS_FROM": "2023-03-06", "DOS_TO": "2023-03-06", "PAID_AMOUNT": 0.0, "UNITS": 1},
        {"DOS_FROM": "2023-03-07", "DOS_TO": "2023-03-10", "PAID_AMOUNT": 400.0, "UNITS": 4},
    ])
    return merge_stays(charges, BusinessRulesConfig())


def _links(stays, encounters):
    config = EncounterConfig()
    return link_encounters(stays, filter_qualifying_encounters(encounters, config), config)


def test_yes_no():
    assert list(yes_no(pd.Series([True, False, None], dtype=object))) == ["Yes", "No", "No"]


def test_stay_detail_sequences(stay_lines, report_window):
    islands, stays = stay_lines
    prior = prior_hospitalizations(_links(stays, pd.DataFrame()))

    detail = build_stay_detail(islands, stays, prior, report_window)

    assert list(detail.columns) == STAY_DETAIL_COLUMNS
    assert list(detail["CLAIM_LINE_IN_STAY"]) == [1, 2, 3]
    paid_seq = detail["PAID_CLAIM_LINE_SEQ"]
    assert paid_seq[0] == 1
    assert pd.isna(paid_seq[1])
    assert paid_seq[2] == 2
    assert set(detail["STAY_HAS_PAID_CLAIMS_YN"]) == {"Yes"}
    assert set(detail["RPT_START_DATE"]) == {pd.Timestamp("2023-01-01")}


def test_stay_detail_defaults(stay_lines, report_window):
    islands, stays = stay_lines
    islands = islands.assign(PAT_MRN_ID=None)
    prior = prior_hospitalizations(_links(stays, pd.DataFrame()))

    detail = build_stay_detail(islands, stays, prior, report_window, demographics=None)
    row = detail.iloc[0]

    assert row["PAT_MRN_ID"] == "34808675"
    assert row["PCP_PROV_ID"] == -1
    assert row["PCP_PROV_NAME"] == "No assigned PCP"
    assert row["EMPANELED_PCP_YN"] == "No"
    assert row["HOSPITAL_TO_STAY"] == "No"
    assert row["LAST_HOSP_ENC_TYPE"] == "N/A"


def test_stay_detail_care_team_and_prior_hospitalization(stay_lines, report_window, make_encounters):
    islands, stays = stay_lines
    demographics = pd.DataFrame({
        "PAT_ID": ["Z1"],
        "PCP_PROV_ID": [1001],
        "PCP_PROV_NAME": ["SMITH, ALEX"],
        "PCP_MED_HOME": ["Northeast"],
        "PAT_MED_HOME": [None],
        "EMPANELED_PCP_YN": ["Yes"],
    })
    encounters = make_encounters([
        {"ADT_PAT_CLASS_C": 102, "PATIENT_CLASS": "Outpatient", "DISCH_DEPT_ID": 101059001,
         "HOSP_ADMSN_TIME": "2023-02-27 10:00", "HOSP_DISCH_TIME": "2023-02-27 15:00", "INP_ADM_DATE": None},
    ])
    prior = prior_hospitalizations(_links(stays, encounters))

    detail = build_stay_detail(islands, stays, prior, report_window, demographics)
    row = detail.iloc[0]

    assert row["PCP_PROV_NAME"] == "SMITH, ALEX"
    assert row["PAT_MED_HOME"] == "No assigned medical home"
    assert row["HOSPITAL_TO_STAY"] == "Yes"
    assert row["LAST_HOSP_ENC_TYPE"] == "Urgent Care"
    assert row["LAST_HOSP_DISCH_TIME"] == pd.Timestamp("2023-02-27 15:00")


def test_hospital_visit_detail(stay_lines, report_window, make_encounters):
    _, stays = stay_lines
    encounters = make_encounters([
        {"PAT_ENC_CSN_ID": 7, "HOSP_ADMSN_TIME": "2023-03-04 08:00", "HOSP_DISCH_TIME": "2023-03-06 12:00"},
    ])
    visits = find_readmissions(_links(stays, encounters), [], EncounterConfig())

    out = build_hospital_visit_detail(visits, report_window)

    assert list(out.columns) == HOSPITAL_VISIT_COLUMNS
    assert len(out) == 1
    assert out.loc[0, "ADMIT_FROM_STAY"] == "Yes"
    assert out.loc[0, "DISCHARGED_TO_STAY"] == "No"
    assert out.loc[0, "RPT_RUN_DATE"] == pd.Timestamp("2024-01-02 06:00")


def test_readmission_columns_mirror_encounter_columns():
    assert READMIT_COLUMNS == ENCOUNTER_DESCRIPTOR_COLUMNS
    assert READMIT_COLUMNS is not ENCOUNTER_DESCRIPTOR_COLUMNS

    readmit = [c for c in HOSPITAL_VISIT_COLUMNS if c.startswith("READMIT_") and c != "READMIT_RISK_SCORE"]
    assert readmit == [f"READMIT_{c}" for c in ENCOUNTER_DESCRIPTOR_COLUMNS]
    assert len(set(HOSPITAL_VISIT_COLUMNS)) == len(HOSPITAL_VISIT_COLUMNS)
