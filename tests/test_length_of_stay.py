import pandas as pd

from PACD.config import BusinessRulesConfig
from PACD.stays import merge_stays
from PACD.length_of_stay import apply_los_exceptions, exclude_unverified_stays

INVALID_RANGE = "Date range not valid with units submitted"


def _stays(charges):
    rules = BusinessRulesConfig()
    islands, stays = merge_stays(charges, rules)
    return islands, stays, rules


def test_length_of_stay_is_clamped_to_calendar_span(make_charges):
    charges = make_charges([
        {"DOS_FROM": "2023-01-01", "DOS_TO": "2023-01-05", "UNITS": 5},
        {"DOS_FROM": "2023-01-01", "DOS_TO": "2023-01-05", "UNITS": 5},
    ])
    islands, stays, rules = _stays(charges)
    assert stays.loc[0, "LENGTH_OF_STAY"] == 10

    adjusted = apply_los_exceptions(islands, stays, rules)
    assert adjusted.loc[0, "LENGTH_OF_STAY"] == 5
    assert adjusted.loc[0, "TOTAL_DOS"] == 5


def test_unpaid_invalid_range_stay_recovers_billed_units(make_charges):
    charges = make_charges([
        {"DOS_FROM": "2023-01-01", "DOS_TO": "2023-01-07", "UNITS": 7,
         "PAID_AMOUNT": 0.0, "REMARK": INVALID_RANGE},
    ])
    islands, stays, rules = _stays(charges)
    assert stays.loc[0, "LENGTH_OF_STAY"] == 0

    adjusted = apply_los_exceptions(islands, stays, rules)
    assert adjusted.loc[0, "LENGTH_OF_STAY"] == 7


def test_recovery_requires_every_bed_day_line_flagged(make_charges):
    charges = make_charges([
        {"DOS_FROM": "2023-01-01", "DOS_TO": "2023-01-07", "UNITS": 7,
         "PAID_AMOUNT": 0.0, "REMARK": INVALID_RANGE},
        {"DOS_FROM": "2023-01-08", "DOS_TO": "2023-01-10", "UNITS": 3,
         "PAID_AMOUNT": 0.0, "REMARK": "Not a covered benefit"},
    ])
    islands, stays, rules = _stays(charges)

    adjusted = apply_los_exceptions(islands, stays, rules)
    assert adjusted.loc[0, "LENGTH_OF_STAY"] == 0


def test_recovered_length_is_clamped(make_charges):
    charges = make_charges([
        {"DOS_FROM": "2023-01-01", "DOS_TO": "2023-01-03", "UNITS": 30,
         "PAID_AMOUNT": 0.0, "REMARK": INVALID_RANGE},
    ])
    islands, stays, rules = _stays(charges)

    adjusted = apply_los_exceptions(islands, stays, rules)
    assert adjusted.loc[0, "LENGTH_OF_STAY"] == 3


def test_unverified_parkview_stay_is_excluded(make_charges):
    charges = make_charges([
        # therapy only, unpaid
        {"PROVIDER_NAME": "Parkview Care Center - SNF", "DOS_FROM": "2023-01-01", "DOS_TO": "2023-01-01",
         "PROC_CODE": "97110", "IS_BED_DAY_CODE": False, "PAID_AMOUNT": 0.0, "UNITS": 1},
        # bed-day line, unpaid
        {"PROVIDER_NAME": "Parkview Care Center - LTC", "DOS_FROM": "2023-02-01", "DOS_TO": "2023-02-05",
         "PAID_AMOUNT": 0.0},
        # therapy only, unpaid, elsewhere
        {"PROVIDER_NAME": "LTHC Solutions", "DOS_FROM": "2023-01-01", "DOS_TO": "2023-01-01",
         "PROC_CODE": "97110", "IS_BED_DAY_CODE": False, "PAID_AMOUNT": 0.0, "UNITS": 1},
        # therapy only, paid
        {"PROVIDER_NAME": "parkview care center - snf", "DOS_FROM": "2023-03-01", "DOS_TO": "2023-03-01",
         "PROC_CODE": "97110", "IS_BED_DAY_CODE": False, "PAID_AMOUNT": 50.0, "UNITS": 1},
    ])
    islands, stays, rules = _stays(charges)
    assert len(stays) == 4

    kept_islands, kept_stays = exclude_unverified_stays(islands, stays, rules)

    assert len(kept_stays) == 3
    assert "Parkview Care Center - SNF" not in set(kept_stays["PROVIDER_NAME"])
    assert sorted(kept_islands["CHARGE_ID"]) == [2, 3, 4]
    assert set(kept_islands["STAY_ID"]) == set(kept_stays["STAY_ID"])


def test_exclusion_without_prefixes_keeps_everything(make_charges):
    charges = make_charges([
        {"PROVIDER_NAME": "Parkview Care Center - SNF", "IS_BED_DAY_CODE": False, "PAID_AMOUNT": 0.0},
    ])
    islands, stays, _ = _stays(charges)

    kept_islands, kept_stays = exclude_unverified_stays(
        islands, stays, BusinessRulesConfig(excluded_facility_prefixes=[])
    )
    assert len(kept_stays) == 1
    pd.testing.assert_frame_equal(kept_islands, islands)


def test_paid_bed_day_stay_survives_next_to_dropped_therapy_stay(make_charges):
    charges = make_charges([
        {"PROVIDER_NAME": "Parkview Care Center - SNF", "DOS_FROM": "2023-01-01", "DOS_TO": "2023-01-01",
         "UNITS": 1, "PAID_AMOUNT": 200.0},
        {"PROVIDER_NAME": "Parkview Care Center - SNF", "DOS_FROM": "2023-03-01", "DOS_TO": "2023-03-01",
         "PROC_CODE": "97110", "IS_BED_DAY_CODE": False, "UNITS": 1, "PAID_AMOUNT": 0.0},
    ])
    islands, stays, rules = _stays(charges)
    assert len(stays) == 2

    kept_islands, kept_stays = exclude_unverified_stays(islands, stays, rules)

    survivor = stays.loc[stays["STAY_BEGIN_DATE"] == pd.Timestamp("2023-01-01"), "STAY_ID"].iloc[0]
    assert list(kept_stays["STAY_ID"]) == [survivor]
    assert set(kept_islands["STAY_ID"]) == {survivor}
    assert list(kept_islands["CHARGE_ID"]) == [1]
