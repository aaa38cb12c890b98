"""
Main pipeline orchestration for the Post-acute Care Dashboard.
"""
import logging
from datetime import datetime
from typing import Dict, Iterable, Optional
import pandas as pd

from .config import (
    TABLE_CONFIG, BUSINESS_RULES, ENCOUNTER_CONFIG, PROVIDER_CONFIG, MANUAL_CORRECTIONS,
    BusinessRulesConfig, EncounterConfig, ProviderConfig, ManualCorrectionsConfig
)
from .utils import setup_logging, calculate_report_window, Timer, ReportWindow
from .data_sources import get_snowflake_session, publish_outputs, DataSourceManager
from .reference_manager import ReferenceDataManager
from .claims_processing import extract_charge_lines
from .providers import normalize_providers
from .date_repair import repair_single_dos, repair_contiguous_gaps
from .stays import merge_stays
from .length_of_stay import apply_los_exceptions, exclude_unverified_stays
from .encounters import (
    filter_qualifying_encounters, link_encounters, prior_hospitalizations, find_readmissions
)
from .assembly import build_stay_detail, build_hospital_visit_detail

logger = logging.getLogger(__name__)


def build_stays(
    raw_claims: pd.DataFrame,
    bed_day_codes: Iterable[str],
    patients: Optional[pd.DataFrame] = None,
    provider_dim: Optional[pd.DataFrame] = None,
    rules: BusinessRulesConfig = None,
    providers: ProviderConfig = None,
    corrections: ManualCorrectionsConfig = None
) -> Dict[str, pd.DataFrame]:
    """
    Run the claim stages: extraction through stay exclusion.

    Args:
        raw_claims: Raw claims feed rows
        bed_day_codes: Bed-day billing codes
        patients: Patient dimension
        provider_dim: Provider dimension
        rules: Business rules (uses default if None)
        providers: Provider configuration (uses default if None)
        corrections: Manual corrections (uses default if None)

    Returns:
        Dictionary with 'charges' (repaired charge lines), 'islands'
        (charge lines with STAY_ID) and 'stays' (one row per stay)
    """
    rules = rules or BUSINESS_RULES
    providers = providers or PROVIDER_CONFIG
    corrections = corrections or MANUAL_CORRECTIONS

    with Timer("Charge Extraction"):
        charges = extract_charge_lines(raw_claims, bed_day_codes, patients, rules, corrections)

    if charges.empty:
        logger.warning("No charge lines survived extraction")
        return {"charges": charges, "islands": charges, "stays": pd.DataFrame()}

    with Timer("Provider Normalization"):
        charges = normalize_providers(charges, provider_dim, providers)

    with Timer("Date Repair"):
        charges = repair_single_dos(charges, rules)
        charges = repair_contiguous_gaps(charges, corrections.contiguous_gap_repairs)

    with Timer("Stay Consolidation"):
        islands, stays = merge_stays(charges, rules)

    with Timer("Length of Stay Exceptions"):
        stays = apply_los_exceptions(islands, stays, rules)
        islands, stays = exclude_unverified_stays(islands, stays, rules)

    return {"charges": charges, "islands": islands, "stays": stays}


def build_dashboard_tables(
    built: Dict[str, pd.DataFrame],
    encounters: pd.DataFrame,
    window: ReportWindow,
    excluded_dispositions: Iterable[str] = (),
    demographics: Optional[pd.DataFrame] = None,
    encounter_config: EncounterConfig = None
) -> Dict[str, pd.DataFrame]:
    """
    Run the encounter and assembly stages over built stays.

    Args:
        built: Output of build_stays
        encounters: Hospital encounter feed
        window: Report coverage window
        excluded_dispositions: Excluded index discharge dispositions
        demographics: Patient demographics / care team
        encounter_config: Encounter configuration (uses default if None)

    Returns:
        Dictionary with 'stay_detail' and 'hospital_visits' output frames
    """
    encounter_config = encounter_config or ENCOUNTER_CONFIG

    with Timer("Encounter Linking"):
        qualifying = filter_qualifying_encounters(encounters, encounter_config)
        links = link_encounters(built["stays"], qualifying, encounter_config)
        prior = prior_hospitalizations(links)
        visits = find_readmissions(links, excluded_dispositions, encounter_config)

    with Timer("Output Assembly"):
        stay_detail = build_stay_detail(
            built["islands"], built["stays"], prior, window, demographics, encounter_config
        )
        hospital_visits = build_hospital_visit_detail(visits, window)

    return {"stay_detail": stay_detail, "hospital_visits": hospital_visits}


def run_post_acute_pipeline(
    run_date: datetime = None,
    publish: bool = True,
    log_level: int = logging.INFO
) -> Optional[Dict[str, pd.DataFrame]]:
    """
    Run the complete Post-acute Care Dashboard pipeline.

    Both outputs are built in full before either is published.

    Args:
        run_date: Run timestamp stamped on the outputs (defaults to now)
        publish: Whether to publish the outputs to Snowflake
        log_level: Logging level (default: INFO)

    Returns:
        Dictionary with the output frames, or None when there are no charge lines
    """
    setup_logging(level=log_level)
    logger.info("="*60)
    logger.info("Starting Post-acute Care Dashboard Pipeline")
    logger.info("="*60)

    try:
        with Timer("Complete Pipeline Execution"):
            # Step 1: Initialize session and managers
            with Timer("Session Initialization"):
                session = get_snowflake_session()
                ref_manager = ReferenceDataManager(session, TABLE_CONFIG)
                data_manager = DataSourceManager(session, TABLE_CONFIG)

                ref_manager.preload_all_references()

            # Step 2: Load claims and patients
            with Timer("Source Loading"):
                raw_claims = data_manager.get_claims_data()
                if raw_claims.empty:
                    logger.warning("No post-acute claim rows found. Pipeline complete.")
                    return None

                patients = data_manager.get_patients(
                    raw_claims["MEMBER_NUMBER"].dropna().astype(str).unique().tolist()
                )

            # Step 3: Charge lines to stays
            built = build_stays(
                raw_claims,
                ref_manager.get_bed_day_codes(),
                patients,
                ref_manager.get_provider_dimension()
            )
            if built["charges"].empty:
                logger.warning("Nothing to publish. Pipeline complete.")
                return None

            # Step 4: Report window
            with Timer("Report Window Calculation"):
                window = calculate_report_window(built["charges"], run_date)

            # Step 5: Encounters and demographics for stay patients
            with Timer("Encounter Loading"):
                pat_ids = built["stays"]["PAT_ID"].dropna().unique().tolist()
                encounters = data_manager.get_hospital_encounters(pat_ids)
                demographics = data_manager.get_demographics(pat_ids)

            # Step 6: Outputs
            outputs = build_dashboard_tables(
                built,
                encounters,
                window,
                ref_manager.get_excluded_dispositions(),
                demographics
            )

            # Step 7: Publish
            if publish:
                with Timer("Snowflake Publish"):
                    publish_outputs(
                        session,
                        {
                            TABLE_CONFIG.stay_detail: outputs["stay_detail"],
                            TABLE_CONFIG.hospital_visits: outputs["hospital_visits"],
                        },
                        TABLE_CONFIG
                    )

            logger.info("="*60)
            logger.info("Post-acute Care Dashboard Pipeline Completed Successfully")
            logger.info("="*60)
            return outputs

    except Exception as e:
        logger.error("="*60)
        logger.error(f"Pipeline failed with error: {str(e)}")
        logger.error("="*60)
        raise


def main():
    """Entry point for running pipeline from command line."""
    run_post_acute_pipeline()


if __name__ == "__main__":
    main()
