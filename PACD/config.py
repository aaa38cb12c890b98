"""
Configuration and constants for the Post-acute Care Dashboard pipeline.
"""
from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass
from datetime import date


@dataclass
class SnowflakeConfig:
    """Snowflake connection configuration."""
    account: str = "jpshealth.south-central-us.azure"
    role: str = "PBI_ANALYTICS_DEVELOPER_ROLE"
    warehouse: str = "PBI_ANALYTICS_XS_WH"
    database: str = "ANALYTICS_DB"
    schema: str = "PBI"


@dataclass
class TableConfig:
    """Table naming configuration."""
    database: str = "ANALYTICS_DB"
    arc_schema: str = "ARC"
    clarity_schema: str = "CLARITY"
    dbo_schema: str = "DBO"
    output_schema: str = "PBI"
    stage_suffix: str = "_STAGE"

    # Sources
    claims: str = "V_QICLINKDATA"
    providers: str = "QICLINKPROVIDERS"
    patients: str = "PATIENT"
    standard_definitions: str = "STANDARD_DEFINITIONS"
    demographics: str = "V_PATIENT"
    hospital_encounters: str = "V_HOSPITAL_ENCOUNTERS"

    # Outputs
    stay_detail: str = "POST_ACUTE_CARE_DASHBOARD_DATA"
    hospital_visits: str = "POST_ACUTE_CARE_DASHBOARD_HOSP_VISITS"

    def source_table(self, schema: str, table: str) -> str:
        """Get fully qualified source table name."""
        return f"{self.database}.{schema}.{table}"

    def claims_table(self) -> str:
        return self.source_table(self.arc_schema, self.claims)

    def providers_table(self) -> str:
        return self.source_table(self.arc_schema, self.providers)

    def patients_table(self) -> str:
        return self.source_table(self.clarity_schema, self.patients)

    def standard_definitions_table(self) -> str:
        return self.source_table(self.dbo_schema, self.standard_definitions)

    def demographics_table(self) -> str:
        return self.source_table(self.dbo_schema, self.demographics)

    def hospital_encounters_table(self) -> str:
        return self.source_table(self.dbo_schema, self.hospital_encounters)

    def output_table(self, table: str) -> str:
        """Get fully qualified output table name."""
        return f"{self.database}.{self.output_schema}.{table}"

    def staging_table(self, table: str) -> str:
        """Get the staging table a published output is built into before the swap."""
        return f"{self.database}.{self.output_schema}.{table}{self.stage_suffix}"


@dataclass
class BillingCodeConfig:
    """Filters selecting bed-day (room and board, skilled nursing) codes from standard definitions."""
    source_id: int = 1
    code_type: str = "UB revenue code"
    code_groups: List[str] = None
    code_subgroups: List[str] = None
    excluded_disposition_group: str = "Excluded index discharge dispositions"

    def __post_init__(self):
        if self.code_groups is None:
            self.code_groups = [
                "Accommodation (room and board) charges",
                "Skilled nursing charges",
            ]

        if self.code_subgroups is None:
            self.code_subgroups = [
                "All inclusive room and board",
                "Room and Board Private (one bed)",
                "Room and Board Semi-private (two beds)",
                "Room and Board (3 and 4 beds)",
                "Room and Board Deluxe Private",
                "Subacute Care",
                "Intensive Care Unit",
                "Skilled Nursing",
            ]


@dataclass
class BusinessRulesConfig:
    """Business rules and thresholds."""
    # Claim extraction
    claim_categories: List[str] = None
    sentinel_member_numbers: List[str] = None
    duplicate_claim_remarks: List[str] = None

    # Date repair
    single_dos_excluded_remarks: List[str] = None

    # Stay consolidation
    adjacency_days: int = 1
    island_strategy: str = "running_end"
    max_split_correction_passes: Optional[int] = None

    # Length of stay exceptions
    invalid_date_remarks: List[str] = None
    excluded_facility_prefixes: List[str] = None

    def __post_init__(self):
        if self.claim_categories is None:
            self.claim_categories = ["SNF", "LTC", "IPR"]

        if self.sentinel_member_numbers is None:
            # MEMBER, NOT FOUND and NOT FOUND, MEMBER
            self.sentinel_member_numbers = ["0000", "00001"]

        if self.duplicate_claim_remarks is None:
            self.duplicate_claim_remarks = [
                "Duplicate claim",
                "Duplicate of charges previously processed",
            ]

        if self.single_dos_excluded_remarks is None:
            self.single_dos_excluded_remarks = [
                "Date range not valid with units submitted",
                "Duplicate of charges previously processed",
            ]

        if self.invalid_date_remarks is None:
            self.invalid_date_remarks = ["Date range not valid with units submitted"]

        if self.excluded_facility_prefixes is None:
            self.excluded_facility_prefixes = ["PARKVIEW"]


@dataclass
class EncounterConfig:
    """Hospital encounter linkage and readmission rules."""
    # Link window around a stay
    days_before_stay: int = 14
    days_after_stay: int = 31
    admit_from_stay_grace_days: int = 1

    # Qualifying encounter classes
    acute_class_codes: List[int] = None
    outpatient_class_code: int = 102
    urgent_care_dept_ids: List[int] = None
    excluded_patient_status: int = 6  # Hospital outpatient visit

    # Readmissions
    readmit_window_days: int = 30
    readmit_flag_days: List[int] = None
    excluded_admit_conf_status: List[int] = None
    index_patient_class: str = "Inpatient"
    outpatient_class_name: str = "Outpatient"
    urgent_care_label: str = "Urgent Care"

    def __post_init__(self):
        if self.acute_class_codes is None:
            # Inpatient, emergency, observation
            self.acute_class_codes = [101, 103, 104]

        if self.urgent_care_dept_ids is None:
            self.urgent_care_dept_ids = [101059001]

        if self.readmit_flag_days is None:
            self.readmit_flag_days = [7, 10, 14, 30]

        if self.excluded_admit_conf_status is None:
            # Pending, canceled
            self.excluded_admit_conf_status = [2, 3]


@dataclass
class ProviderRemap:
    """Full replacement of a deprecated provider record by its successor."""
    from_provider_id: str
    to_provider_id: str
    provider_name: str
    tin: str


@dataclass
class ProviderConfig:
    """Facility override table and provider record corrections."""
    # provider id -> (parent facility, display name)
    facility_overrides: Dict[str, Tuple[str, str]] = None
    remaps: List[ProviderRemap] = None
    # duplicate display name -> canonical display name
    name_aliases: Dict[str, str] = None

    def __post_init__(self):
        if self.facility_overrides is None:
            self.facility_overrides = {
                "6101": ("Arlington Heights Health And Rehab", "Arlington Heights Health And Rehab"),
                "6102": ("Arlington Heights Health And Rehab", "Arlington Heights Health And Rehab"),
                "7569": ("Arlington Heights Health And Rehab", "Arlington Heights Health And Rehab"),
                "5902": ("Bishop Davies Nursing Center", "Bishop Davies Nursing Center - LTC"),
                "5820": ("Bishop Davies Nursing Center", "Bishop Davies Nursing Center - SNF"),
                "6661": ("Brentwood Place III", "Brentwood Place III"),
                "6193": ("Cedar Hill Healthcare Center", "Cedar Hill Healthcare Center"),
                "5866": ("Cityview Nursing And Rehabilitation Center", "Cityview Nursing And Rehabilitation Center"),
                "3122": ("Diversicare Estates, LLC", "Diversicare Estates, LLC"),
                "6495": ("DFW Nursing & Rehab", "DFW Nursing & Rehab"),
                "6787": ("DFW Nursing & Rehab", "DFW Nursing & Rehab"),
                "5889": ("DFW Nursing & Rehab", "DFW Nursing & Rehab LTC"),
                "5717": ("Downtown Health and Rehabilitation", "Downtown Health-LTC"),
                "4621": ("Downtown Health and Rehabilitation", "Downtown Health-SNF"),
                "6921": ("Fanning County Hospital Authority", "Fanning County Hospital Authority"),
                "6199": ("Fort Worth Transitional Care Center", "Fort Worth Transitional Care Center"),
                "6960": ("Interlochen Health And Rehab", "Interlochen Health And Rehab LTC"),
                "5775": ("Interlochen Health And Rehab", "Interlochen Health And Rehab SNF"),
                "3252": ("Kindred Hospital Tarrant County", "Kindred Hospital Fort Worth"),
                "3297": ("Kindred Hospital Tarrant County", "Kindred Hospital-Tarrant County"),
                "6124": ("LTHC Solutions", "LTHC Solutions"),
                "5857": ("Parkview Care Center", "Parkview Care Center - LTC"),
                "5759": ("Parkview Care Center", "Parkview Care Center - SNF"),
                "6401": ("Remarkable Healthcare of Fort Worth", "Remarkable Healthcare of Fort Worth"),
                "6403": ("Richland Hills Rehabilitation And Healthcare", "Richland Hills Rehabilitation And Healthcare"),
                "5855": ("Ridgmar Medical Lodge - SNF", "Ridgmar Medical Lodge - SNF"),
                "5194": ("Texas Rehabilitation Hospital", "Texas Rehabilitation Hospital"),
                "6195": ("The Meadows Health & Rehab", "The Meadows Health & Rehab"),
                "5956": ("Weatherford Healthcare Center - SNF", "Weatherford Healthcare Center - SNF"),
                "3471": ("West Side Campus of Care", "West Side Campus of Care"),
                "6992": ("West Side Campus of Care", "West Side Campus of Care"),
                "6593": ("White Settlement Nursing Center", "White Settlement Nursing Center"),
            }

        if self.remaps is None:
            self.remaps = [
                ProviderRemap(
                    from_provider_id="3142",  # Downtown Health and Rehabilitation
                    to_provider_id="4621",
                    provider_name="Downtown Health-SNF",
                    tin="461353294",
                ),
            ]

        if self.name_aliases is None:
            self.name_aliases = {
                "Kindred Hospital Fort Worth": "Kindred Hospital-Tarrant County",
            }


@dataclass
class ContiguousGapRepair:
    """A (facility, patient, window) whose lines are re-chained end to start."""
    provider_name: str
    pat_mrn_id: str
    window_start: date
    window_end: date


@dataclass
class ManualCorrectionsConfig:
    """Corrections established by manual chart audit."""
    # Voided in the claims system although the patient did stay at the facility
    retained_voided_claims: List[str] = None
    contiguous_gap_repairs: List[ContiguousGapRepair] = None

    def __post_init__(self):
        if self.retained_voided_claims is None:
            self.retained_voided_claims = ["20656624"]

        if self.contiguous_gap_repairs is None:
            self.contiguous_gap_repairs = [
                ContiguousGapRepair(
                    provider_name="LTHC Solutions",
                    pat_mrn_id="34808675",
                    window_start=date(2020, 4, 10),
                    window_end=date(2020, 6, 24),
                ),
            ]


# Global configuration instances
SNOWFLAKE_CONFIG = SnowflakeConfig()
TABLE_CONFIG = TableConfig()
BILLING_CODE_CONFIG = BillingCodeConfig()
BUSINESS_RULES = BusinessRulesConfig()
ENCOUNTER_CONFIG = EncounterConfig()
PROVIDER_CONFIG = ProviderConfig()
MANUAL_CORRECTIONS = ManualCorrectionsConfig()


# Claims feed columns and their pipeline names
CLAIMS_COLUMN_MAP = {
    "CHKGRP": "IPA",
    "TIN": "TIN",
    "CLAIM_NUMBER": "CLAIM_NUMBER",
    "WORKSHEET_NUMBER": "WORKSHEET_NUMBER",
    "LINE_NUMBER": "LINE_NUMBER",
    "LINE_COUNTER": "LINE_COUNTER",
    "LINE_DUPLICATE_COUNTER": "LINE_DUPLICATE_COUNTER",
    "PROVIDER_ID": "PROVIDER_ID",
    "MEMBER_NUMBER": "MEMBER_NUMBER",
    "LAST_NAME": "MEMBER_LAST_NAME",
    "FIRST_NAME": "MEMBER_FIRST_NAME",
    "BENEFIT_PLAN": "BENEFIT_PLAN",
    "DOS_FROM": "DOS_FROM",
    "DOS_TO": "DOS_TO",
    "DX": "DX",
    "PROC_CODE": "PROC_CODE",
    "PROC_DESCRIPTION": "PROC_DESCRIPTION",
    "UNITS": "UNITS",
    "UNIT_RATE": "UNIT_RATE",
    "TOTAL_CHARGES": "TOTAL_CHARGES",
    "PAID_AMOUNT": "PAID_AMOUNT",
    "REMARK": "REMARK",
}

DEMOGRAPHIC_COLUMNS = [
    "PAT_ID",
    "PCP_PROV_ID",
    "PCP_PROV_NAME",
    "PCP_MED_HOME",
    "PAT_MED_HOME",
    "EMPANELED_PCP_YN",
]

DEMOGRAPHIC_DEFAULTS = {
    "PCP_PROV_ID": -1,
    "PCP_PROV_NAME": "No assigned PCP",
    "PCP_MED_HOME": "No PCP medical home",
    "PAT_MED_HOME": "No assigned medical home",
    "EMPANELED_PCP_YN": "No",
}

ENCOUNTER_DESCRIPTOR_COLUMNS = [
    "PAT_ENC_CSN_ID",
    "HSP_ACCOUNT_ID",
    "HOSP_ADMSN_TIME",
    "INP_ADM_DATE",
    "HOSP_DISCH_TIME",
    "ADMIT_DEPT",
    "DISCH_DEPT",
    "DISCH_DEPT_ID",
    "DISCH_LOCATION",
    "PATIENT_CLASS",
    "ADT_PATIENT_STATUS",
    "DISCH_DISPOSITION",
    "PRIMARY_PX_NAME",
    "PRIMARY_PX_BILL_CODE",
    "PRIMARY_DRG_NAME",
    "PRIMARY_DRG_BILL_CODE",
    "PRIMARY_DX_CODE",
    "PRIMARY_DX_NAME",
    "PRIMARY_PAYOR_NAME",
    "PRIMARY_PLAN_NAME",
    "SECONDARY_PAYOR_NAME",
    "SECONDARY_PLAN_NAME",
    "TOTAL_CHARGES",
]

# Encounter columns copied onto the hospital-visit row for the readmission
READMIT_COLUMNS = list(ENCOUNTER_DESCRIPTOR_COLUMNS)

STAY_DETAIL_COLUMNS = [
    "RPT_START_DATE", "RPT_END_DATE", "RPT_RUN_DATE",
    "IPA", "TIN", "PARENT_FACILITY", "PROVIDER_ID", "PROVIDER_NAME", "STAY_ID",
    "MEMBER_NUMBER", "PAT_ID", "PAT_MRN_ID", "PAT_NAME",
    "MEMBER_LAST_NAME", "MEMBER_FIRST_NAME", "BENEFIT_PLAN",
    "CLAIM_NUMBER", "WORKSHEET_NUMBER", "LINE_NUMBER", "CLAIM_LINE_SEQ",
    "DOS_FROM", "DOS_TO", "STAY_BEGIN_DATE", "STAY_END_DATE",
    "LOS", "LENGTH_OF_STAY", "TOTAL_DOS",
    "PROC_CODE", "PROC_DESCRIPTION", "UNITS", "UNIT_RATE", "TOTAL_CHARGES", "PAID_AMOUNT", "REMARK",
    "CLAIM_LINE_IN_STAY", "PAID_CLAIM_LINE_SEQ", "STAY_HAS_PAID_CLAIMS_YN",
    "PCP_PROV_ID", "PCP_PROV_NAME", "PCP_MED_HOME", "PAT_MED_HOME", "EMPANELED_PCP_YN",
    "HOSPITAL_TO_STAY", "LAST_HOSP_ENC_TYPE", "LAST_HOSP_CSN_ID",
    "LAST_HOSP_ADMSN_TIME", "LAST_HOSP_DISCH_TIME", "LAST_HOSP_DISCH_DEPT",
    "DISCH_DX_CODE", "DISCH_DX_NAME", "DISCH_DISPOSITION",
]

HOSPITAL_VISIT_COLUMNS = (
    [
        "RPT_START_DATE", "RPT_END_DATE", "RPT_RUN_DATE",
        "PAT_ID", "PAT_MRN_ID", "PAT_NAME",
        "STAY_ID", "STAY_BEGIN_DATE", "STAY_END_DATE",
        "DISCHARGED_TO_STAY", "ADMIT_FROM_STAY",
    ]
    + ENCOUNTER_DESCRIPTOR_COLUMNS
    + ["READMIT_RISK_SCORE", "LACE_PLUS_SCORE", "DAYS_TO_NEXT_INP_ADM"]
    + [f"INP_ADM_{days}_DAY_READM_FLAG" for days in ENCOUNTER_CONFIG.readmit_flag_days]
    + [f"READMIT_{c}" for c in READMIT_COLUMNS]
)
