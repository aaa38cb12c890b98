import pandas as pd
import pytest

from PACD.config import BusinessRulesConfig
from PACD.stays import (
    assign_islands, correct_split_stays, summarize_stays,
    count_touching_stay_pairs, merge_stays
)


def day(n):
    """Calendar date of day n of 2023 (day 1 is Jan 1)."""
    return pd.Timestamp("2023-01-01") + pd.Timedelta(days=n - 1)


def spans(*pairs, **common):
    return [{"DOS_FROM": day(a), "DOS_TO": day(b), **common} for a, b in pairs]


@pytest.mark.parametrize("strategy", ["running_end", "previous_row"])
def test_long_line_absorbs_later_short_lines(make_charges, strategy):
    charges = make_charges(spans((1, 90), (10, 10), (45, 45)))
    islands, stays = merge_stays(charges, BusinessRulesConfig(island_strategy=strategy))

    assert len(stays) == 1
    assert stays.loc[0, "STAY_BEGIN_DATE"] == day(1)
    assert stays.loc[0, "STAY_END_DATE"] == day(90)
    assert set(islands["STAY_ID"]) == {1}


def test_previous_row_scan_splits_until_corrected(make_charges):
    charges = make_charges(spans((1, 90), (10, 10), (45, 45)))

    islands = assign_islands(charges, strategy="previous_row", adjacency_days=1)
    assert islands["STAY_ID"].nunique() == 2

    corrected = correct_split_stays(islands, adjacency_days=1)
    assert corrected["STAY_ID"].nunique() == 1


def test_chained_splits_need_repeated_passes(make_charges):
    charges = make_charges(spans((1, 30), (5, 5), (20, 20), (25, 25)))
    islands = assign_islands(charges, strategy="previous_row", adjacency_days=1)
    assert islands["STAY_ID"].nunique() == 3

    one_pass = correct_split_stays(islands, max_passes=1, adjacency_days=1)
    assert one_pass["STAY_ID"].nunique() == 2

    fixpoint = correct_split_stays(islands, adjacency_days=1)
    assert fixpoint["STAY_ID"].nunique() == 1


def test_adjacent_days_join_and_gaps_split(make_charges):
    joined = make_charges(spans((1, 5), (6, 8)))
    _, stays = merge_stays(joined, BusinessRulesConfig())
    assert len(stays) == 1

    gapped = make_charges(spans((1, 5), (7, 8)))
    _, stays = merge_stays(gapped, BusinessRulesConfig())
    assert len(stays) == 2


def test_stays_partition_by_patient_and_facility(make_charges):
    charges = make_charges(
        spans((1, 10))
        + spans((1, 10), PROVIDER_NAME="LTHC Solutions")
        + spans((1, 10), PAT_KEY="99990000", PAT_MRN_ID="99990000")
    )
    islands, stays = merge_stays(charges, BusinessRulesConfig())

    assert len(stays) == 3
    assert islands.groupby("STAY_ID")["CHARGE_ID"].count().tolist() == [1, 1, 1]


def test_every_line_in_exactly_one_non_touching_stay(make_charges):
    charges = make_charges(
        spans((1, 4), (3, 9), (11, 11), (12, 20), (40, 41), (43, 60), (44, 44), (61, 61))
        + spans((2, 30), (15, 15), PROVIDER_NAME="LTHC Solutions")
    )
    islands, stays = merge_stays(charges, BusinessRulesConfig())

    assert len(islands) == len(charges)
    assert islands["STAY_ID"].notna().all()
    assert sorted(islands["CHARGE_ID"]) == sorted(charges["CHARGE_ID"])
    assert count_touching_stay_pairs(stays, adjacency_days=1) == 0
    assert sorted(stays["STAY_ID"]) == list(range(1, len(stays) + 1))

    extents = islands.groupby("STAY_ID").agg(begin=("DOS_FROM", "min"), end=("DOS_TO", "max"))
    merged = stays.set_index("STAY_ID").join(extents)
    assert (merged["STAY_BEGIN_DATE"] == merged["begin"]).all()
    assert (merged["STAY_END_DATE"] == merged["end"]).all()


def test_summary_counts_paid_bed_days(make_charges):
    charges = make_charges(
        spans((1, 5), UNITS=5, PAID_AMOUNT=500.0)
        + spans((6, 10), UNITS=5, PAID_AMOUNT=0.0)
        + spans((6, 6), UNITS=1, PAID_AMOUNT=80.0, IS_BED_DAY_CODE=False, PROC_CODE="97110")
    )
    islands, _ = merge_stays(charges, BusinessRulesConfig())
    stays = summarize_stays(islands)

    assert stays.loc[0, "LENGTH_OF_STAY"] == 5
    assert stays.loc[0, "TOTAL_DOS"] == 10
    assert stays.loc[0, "TOTAL_PAID_AMOUNT"] == 580.0
    assert bool(stays.loc[0, "STAY_HAS_PAID_CLAIMS"])
    assert bool(stays.loc[0, "STAY_HAS_RB_CODES"])


def test_unknown_strategy_is_rejected(make_charges):
    with pytest.raises(ValueError):
        assign_islands(make_charges(spans((1, 2))), strategy="nearest")
