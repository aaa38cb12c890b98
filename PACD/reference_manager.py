"""
Reference data management for the Post-acute Care Dashboard pipeline.
"""
import logging
from typing import Dict, List, Optional
import pandas as pd
from snowflake.snowpark import Session
from snowflake.snowpark.functions import col

from .config import TABLE_CONFIG, BILLING_CODE_CONFIG, BillingCodeConfig

logger = logging.getLogger(__name__)


def select_bed_day_codes(definitions: pd.DataFrame, config: BillingCodeConfig = None) -> List[str]:
    """
    Pick the room and board / skilled nursing revenue codes from standard definitions.

    Args:
        definitions: Standard definitions (SOURCE_ID, CODE_TYPE, CODE_GROUP, CODE_SUBGRP_A, STD_CODE)
        config: Billing code configuration (uses default if None)

    Returns:
        Sorted list of distinct bed-day procedure codes
    """
    config = config or BILLING_CODE_CONFIG
    codes = definitions[
        (pd.to_numeric(definitions["SOURCE_ID"], errors="coerce") == config.source_id)
        & (definitions["CODE_TYPE"] == config.code_type)
        & definitions["CODE_GROUP"].isin(config.code_groups)
        & definitions["CODE_SUBGRP_A"].isin(config.code_subgroups)
    ]["STD_CODE"]
    return sorted(codes.dropna().astype(str).str.strip().unique())


def select_excluded_dispositions(definitions: pd.DataFrame, config: BillingCodeConfig = None) -> List[str]:
    """Discharge dispositions that never count as readmission index discharges."""
    config = config or BILLING_CODE_CONFIG
    names = definitions[definitions["CODE_GROUP"] == config.excluded_disposition_group]["CODE_NAME"]
    return sorted(names.dropna().unique())


class ReferenceDataManager:
    """
    Manager for loading and caching reference data.

    Reference data covers the standard definitions (bed-day billing codes,
    excluded discharge dispositions) and the provider dimension.
    """

    def __init__(self, session: Session, table_config=None, billing_config: BillingCodeConfig = None):
        """
        Initialize reference data manager.

        Args:
            session: Snowpark session
            table_config: Table configuration (uses default if None)
            billing_config: Billing code configuration (uses default if None)
        """
        self.session = session
        self.table_config = table_config or TABLE_CONFIG
        self.billing_config = billing_config or BILLING_CODE_CONFIG
        self._cache: Dict[str, object] = {}

    def _cached(self, cache_key: str, use_cache: bool) -> Optional[object]:
        if use_cache and cache_key in self._cache:
            logger.debug(f"Using cached reference data: {cache_key}")
            return self._cache[cache_key]
        return None

    def get_standard_definitions(self, use_cache: bool = True) -> pd.DataFrame:
        """
        Load the standard definition rows the pipeline uses.

        Only bed-day code groups and the excluded disposition group are pulled.

        Returns:
            pandas DataFrame with SOURCE_ID, CODE_TYPE, CODE_GROUP, CODE_SUBGRP_A, STD_CODE, CODE_NAME
        """
        cache_key = "standard_definitions"
        cached = self._cached(cache_key, use_cache)
        if cached is not None:
            return cached

        table_name = self.table_config.standard_definitions_table()
        logger.info(f"Loading reference table: {table_name}")

        groups = self.billing_config.code_groups + [self.billing_config.excluded_disposition_group]
        df = (
            self.session.table(table_name)
            .filter(col("CODE_GROUP").isin(groups))
            .select("SOURCE_ID", "CODE_TYPE", "CODE_GROUP", "CODE_SUBGRP_A", "STD_CODE", "CODE_NAME")
            .to_pandas()
        )

        if use_cache:
            self._cache[cache_key] = df
        return df

    def get_bed_day_codes(self, use_cache: bool = True) -> List[str]:
        """Get room and board / skilled nursing revenue codes."""
        codes = select_bed_day_codes(self.get_standard_definitions(use_cache), self.billing_config)
        logger.info(f"Loaded {len(codes)} bed-day billing codes")
        return codes

    def get_excluded_dispositions(self, use_cache: bool = True) -> List[str]:
        """Get excluded index discharge dispositions."""
        return select_excluded_dispositions(self.get_standard_definitions(use_cache), self.billing_config)

    def get_provider_dimension(self, use_cache: bool = True) -> pd.DataFrame:
        """
        Get the provider dimension.

        Returns:
            pandas DataFrame with columns: PROVIDER_SEQUENCE, PROVIDER_NAME_FORMATTED
        """
        cache_key = "providers"
        cached = self._cached(cache_key, use_cache)
        if cached is not None:
            return cached

        table_name = self.table_config.providers_table()
        logger.info(f"Loading reference table: {table_name}")

        df = (
            self.session.table(table_name)
            .select("PROVIDER_SEQUENCE", "PROVIDER_NAME_FORMATTED")
            .to_pandas()
        )

        if use_cache:
            self._cache[cache_key] = df
        return df

    def preload_all_references(self) -> None:
        """Preload all reference tables into cache."""
        logger.info("Preloading all reference tables")

        self.get_standard_definitions()
        self.get_provider_dimension()

        logger.info(f"Preloaded {len(self._cache)} reference tables")

    def clear_cache(self) -> None:
        """Clear all cached reference data."""
        logger.info("Clearing reference data cache")
        self._cache.clear()

    def get_cache_info(self) -> Dict[str, object]:
        """
        Get information about cached reference tables.

        Returns:
            Dictionary with cache statistics
        """
        return {
            "cached_tables": len(self._cache),
            "table_names": list(self._cache.keys())
        }
