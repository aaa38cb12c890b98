"""
Snowflake data source management for the Post-acute Care Dashboard pipeline.
"""
import os
import logging
from typing import Dict, List, Optional
import pandas as pd
from snowflake.snowpark import Session
from snowflake.snowpark import DataFrame
from snowflake.snowpark.functions import col
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.backends import default_backend

from .config import SNOWFLAKE_CONFIG, BUSINESS_RULES, CLAIMS_COLUMN_MAP, DEMOGRAPHIC_COLUMNS

logger = logging.getLogger(__name__)


def get_snowflake_session(
    account: Optional[str] = None,
    role: Optional[str] = None,
    warehouse: Optional[str] = None,
    database: Optional[str] = None,
    schema: Optional[str] = None
) -> Session:
    """
    Create and return a Snowflake Snowpark session.

    Uses private key authentication from environment variables.

    Args:
        account: Snowflake account (defaults to config)
        role: Snowflake role (defaults to config)
        warehouse: Snowflake warehouse (defaults to config)
        database: Snowflake database (defaults to config)
        schema: Snowflake schema (defaults to config)

    Returns:
        Snowpark Session object

    Raises:
        ValueError: If required environment variables are not set
    """
    pkey_pem = os.getenv("MY_SF_PKEY")
    if not pkey_pem:
        raise ValueError("MY_SF_PKEY environment variable not set")

    username = os.getenv('MY_SF_USER')
    if not username:
        raise ValueError("MY_SF_USER environment variable not set")

    pkey = serialization.load_pem_private_key(
        pkey_pem.encode("utf-8"),
        password=None,
        backend=default_backend()
    )

    connection = {
        "account": account or SNOWFLAKE_CONFIG.account,
        "user": username,
        "private_key": pkey,
        "role": role or SNOWFLAKE_CONFIG.role,
        "warehouse": warehouse or SNOWFLAKE_CONFIG.warehouse,
        "database": database or SNOWFLAKE_CONFIG.database,
        "schema": schema or SNOWFLAKE_CONFIG.schema
    }

    logger.info(f"Connecting to Snowflake - Database: {connection['database']}, Schema: {connection['schema']}")
    return Session.builder.configs(connection).create()


def export_to_snowflake(
    df: DataFrame,
    table_name: str,
    mode: str = "overwrite"
) -> None:
    """
    Export a Snowpark DataFrame to Snowflake table.

    Args:
        df: Snowpark DataFrame to export
        table_name: Fully qualified table name (database.schema.table)
        mode: Write mode ('overwrite', 'append', 'errorifexists')

    Raises:
        ValueError: If mode is not valid
    """
    valid_modes = ["overwrite", "append", "errorifexists"]
    if mode not in valid_modes:
        raise ValueError(f"Invalid mode '{mode}'. Must be one of: {valid_modes}")

    logger.info(f"Exporting data to Snowflake table: {table_name} (mode: {mode})")

    try:
        df.write.mode(mode).save_as_table(table_name)
        logger.info("Export complete.")
    except Exception as e:
        logger.error(f"Failed to export to {table_name}: {str(e)}")
        raise


def publish_outputs(
    session: Session,
    outputs: Dict[str, pd.DataFrame],
    table_config
) -> None:
    """
    Publish output tables so readers never see a partial refresh.

    Every output is first written in full to its staging table. Only when all
    staging writes succeed is each staging table swapped with its target. A
    failure while staging leaves the published tables untouched; a failure
    while swapping swaps the already-promoted tables back, newest first.
    Staging tables are dropped only after every swap has succeeded.

    Args:
        session: Snowpark session
        outputs: Output table name (unqualified) -> pandas DataFrame
        table_config: Table configuration object
    """
    staged = []
    for table, pdf in outputs.items():
        stage_table = table_config.staging_table(table)
        logger.info(f"Staging {len(pdf)} rows for {table}")
        export_to_snowflake(session.create_dataframe(pdf), stage_table, mode="overwrite")
        staged.append((table_config.output_table(table), stage_table))

    swapped = []
    try:
        for target_table, stage_table in staged:
            logger.info(f"Swapping {stage_table} into {target_table}")
            session.sql(f"CREATE TABLE IF NOT EXISTS {target_table} LIKE {stage_table}").collect()
            session.sql(f"ALTER TABLE {target_table} SWAP WITH {stage_table}").collect()
            swapped.append((target_table, stage_table))
    except Exception as e:
        logger.error(f"Failed to publish {target_table}: {str(e)}")
        for done_target, done_stage in reversed(swapped):
            logger.warning(f"Restoring previous {done_target}")
            session.sql(f"ALTER TABLE {done_target} SWAP WITH {done_stage}").collect()
        raise

    for _, stage_table in staged:
        session.sql(f"DROP TABLE IF EXISTS {stage_table}").collect()

    logger.info(f"Published {len(staged)} output tables")


class DataSourceManager:
    """Manager for loading and caching source tables as pandas DataFrames."""

    def __init__(self, session: Session, table_config):
        """
        Initialize data source manager.

        Args:
            session: Snowpark session
            table_config: Table configuration object
        """
        self.session = session
        self.table_config = table_config
        self._cache = {}

    def get_claims_data(self, use_cache: bool = True) -> pd.DataFrame:
        """
        Load post-acute claim rows (all revisions) for the configured claim categories.

        Args:
            use_cache: Whether to use cached data if available

        Returns:
            pandas DataFrame with the claims feed columns
        """
        cache_key = "claims"
        if use_cache and cache_key in self._cache:
            logger.debug("Using cached claims data")
            return self._cache[cache_key]

        table_name = self.table_config.claims_table()
        logger.info(f"Loading claims data from {table_name}")

        df = (
            self.session.table(table_name)
            .filter(col("CHKGRP").isin(BUSINESS_RULES.claim_categories))
            .select(*CLAIMS_COLUMN_MAP.keys())
            .to_pandas()
        )
        logger.info(f"Loaded {len(df)} claim rows")

        if use_cache:
            self._cache[cache_key] = df

        return df

    def get_patients(self, member_numbers: List[str], use_cache: bool = True) -> pd.DataFrame:
        """
        Load patient identifiers for the given member numbers (matched on MRN).

        Args:
            member_numbers: Member numbers from the claims feed
            use_cache: Whether to use cached data if available

        Returns:
            pandas DataFrame with PAT_ID, PAT_MRN_ID, PAT_NAME
        """
        cache_key = "patients"
        if use_cache and cache_key in self._cache:
            logger.debug("Using cached patient data")
            return self._cache[cache_key]

        table_name = self.table_config.patients_table()
        logger.info(f"Loading patients from {table_name}")

        keys = [str(k) for k in member_numbers if k is not None]
        if not keys:
            logger.warning("No member numbers supplied - skipping patient pull")
            return pd.DataFrame(columns=["PAT_ID", "PAT_MRN_ID", "PAT_NAME"])

        df = (
            self.session.table(table_name)
            .filter(col("PAT_MRN_ID").isin(keys))
            .select("PAT_ID", "PAT_MRN_ID", "PAT_NAME")
            .to_pandas()
        )

        if use_cache:
            self._cache[cache_key] = df

        return df

    def get_demographics(self, pat_ids: List[str], use_cache: bool = True) -> pd.DataFrame:
        """
        Load care team details for the given patients.

        Args:
            pat_ids: Patient ids
            use_cache: Whether to use cached data if available

        Returns:
            pandas DataFrame with DEMOGRAPHIC_COLUMNS
        """
        cache_key = "demographics"
        if use_cache and cache_key in self._cache:
            logger.debug("Using cached demographics data")
            return self._cache[cache_key]

        table_name = self.table_config.demographics_table()
        logger.info(f"Loading demographics from {table_name}")

        keys = [str(k) for k in pat_ids if k is not None]
        if not keys:
            return pd.DataFrame(columns=DEMOGRAPHIC_COLUMNS)

        df = (
            self.session.table(table_name)
            .filter(col("PAT_ID").isin(keys))
            .select(*DEMOGRAPHIC_COLUMNS)
            .to_pandas()
        )

        if use_cache:
            self._cache[cache_key] = df

        return df

    def get_hospital_encounters(self, pat_ids: List[str], use_cache: bool = True) -> pd.DataFrame:
        """
        Load hospital encounters for the given patients.

        Args:
            pat_ids: Patient ids
            use_cache: Whether to use cached data if available

        Returns:
            pandas DataFrame with the flattened hospital encounter columns
        """
        cache_key = "hospital_encounters"
        if use_cache and cache_key in self._cache:
            logger.debug("Using cached hospital encounter data")
            return self._cache[cache_key]

        table_name = self.table_config.hospital_encounters_table()
        logger.info(f"Loading hospital encounters from {table_name}")

        keys = [str(k) for k in pat_ids if k is not None]
        if not keys:
            logger.warning("No patient ids supplied - skipping encounter pull")
            return pd.DataFrame()

        df = (
            self.session.table(table_name)
            .filter(col("PAT_ID").isin(keys))
            .to_pandas()
        )
        logger.info(f"Loaded {len(df)} hospital encounters")

        if use_cache:
            self._cache[cache_key] = df

        return df

    def clear_cache(self) -> None:
        """Clear all cached data."""
        logger.info("Clearing data source cache")
        self._cache.clear()
