"""
PACD - Post-acute Care Dashboard Pipeline

Builds skilled nursing, long-term care and inpatient rehab stays from
post-acute claim lines, links them to the surrounding hospital encounters
and publishes the dashboard tables to Snowflake.
"""

__version__ = "1.0.0"
__author__ = "Analytics Team"

# Main pipeline execution
from .pipeline import run_post_acute_pipeline, build_stays, build_dashboard_tables, main

# Configuration
from .config import (
    SNOWFLAKE_CONFIG,
    TABLE_CONFIG,
    BILLING_CODE_CONFIG,
    BUSINESS_RULES,
    ENCOUNTER_CONFIG,
    PROVIDER_CONFIG,
    MANUAL_CORRECTIONS
)

# Data sources
from .data_sources import get_snowflake_session, export_to_snowflake, publish_outputs, DataSourceManager

# Reference data management
from .reference_manager import ReferenceDataManager

# Pipeline stages
from .claims_processing import extract_charge_lines
from .providers import normalize_providers
from .date_repair import repair_single_dos, repair_contiguous_gaps
from .stays import merge_stays
from .length_of_stay import apply_los_exceptions, exclude_unverified_stays
from .encounters import filter_qualifying_encounters, link_encounters, find_readmissions
from .assembly import build_stay_detail, build_hospital_visit_detail

# Utilities
from .utils import setup_logging, calculate_report_window, ReportWindow, Timer

__all__ = [
    # Main pipeline
    "run_post_acute_pipeline",
    "build_stays",
    "build_dashboard_tables",
    "main",

    # Configuration
    "SNOWFLAKE_CONFIG",
    "TABLE_CONFIG",
    "BILLING_CODE_CONFIG",
    "BUSINESS_RULES",
    "ENCOUNTER_CONFIG",
    "PROVIDER_CONFIG",
    "MANUAL_CORRECTIONS",

    # Data sources
    "get_snowflake_session",
    "export_to_snowflake",
    "publish_outputs",
    "DataSourceManager",

    # Reference data
    "ReferenceDataManager",

    # Pipeline stages
    "extract_charge_lines",
    "normalize_providers",
    "repair_single_dos",
    "repair_contiguous_gaps",
    "merge_stays",
    "apply_los_exceptions",
    "exclude_unverified_stays",
    "filter_qualifying_encounters",
    "link_encounters",
    "find_readmissions",
    "build_stay_detail",
    "build_hospital_visit_detail",

    # Utilities
    "setup_logging",
    "calculate_report_window",
    "ReportWindow",
    "Timer",
]
