"""
Provider normalization for the Post-acute Care Dashboard pipeline.

Resolves each claim line's facility to a display name and a parent facility,
then applies the provider record corrections kept in ProviderConfig.
"""
import logging
from typing import Optional
import pandas as pd

from .config import PROVIDER_CONFIG, ProviderConfig
from .utils import id_key

logger = logging.getLogger(__name__)


def _dimension_lookup(provider_dim: Optional[pd.DataFrame]) -> pd.Series:
    """Map provider sequence -> formatted provider name from the provider dimension."""
    if provider_dim is None or provider_dim.empty:
        return pd.Series(dtype=object)

    dim = provider_dim.dropna(subset=["PROVIDER_SEQUENCE"]).copy()
    dim["KEY"] = id_key(dim["PROVIDER_SEQUENCE"])
    return dim.drop_duplicates("KEY").set_index("KEY")["PROVIDER_NAME_FORMATTED"]


def normalize_providers(
    charges: pd.DataFrame,
    provider_dim: Optional[pd.DataFrame] = None,
    config: ProviderConfig = None
) -> pd.DataFrame:
    """
    Resolve facility names and apply provider corrections.

    Display name comes from the facility override table, then the provider
    dimension, then the raw name on the claim. Parent facility comes from the
    override table, then the dimension name, then the display name. The
    deprecated-id remaps and duplicate-name aliases are applied afterwards,
    unconditionally. Running this twice gives the same result.

    Args:
        charges: Charge lines with PROVIDER_ID (and optionally TIN, RAW_PROVIDER_NAME)
        provider_dim: Provider dimension (PROVIDER_SEQUENCE, PROVIDER_NAME_FORMATTED)
        config: Provider configuration (uses default if None)

    Returns:
        Charge lines with PROVIDER_ID, PROVIDER_NAME, PARENT_FACILITY and TIN resolved
    """
    config = config or PROVIDER_CONFIG
    logger.info("Normalizing provider names")

    df = charges.copy()
    df["PROVIDER_ID"] = id_key(df["PROVIDER_ID"])
    if "TIN" in df.columns:
        df["TIN"] = id_key(df["TIN"])

    overrides = pd.DataFrame.from_dict(
        config.facility_overrides, orient="index",
        columns=["OVERRIDE_PARENT", "OVERRIDE_NAME"]
    )
    dim_names = _dimension_lookup(provider_dim)

    override_parent = df["PROVIDER_ID"].map(overrides["OVERRIDE_PARENT"])
    override_name = df["PROVIDER_ID"].map(overrides["OVERRIDE_NAME"])
    dim_name = df["PROVIDER_ID"].map(dim_names)

    if "RAW_PROVIDER_NAME" in df.columns:
        raw_name = df["RAW_PROVIDER_NAME"]
    elif "PROVIDER_NAME" in df.columns:
        raw_name = df["PROVIDER_NAME"]
    else:
        raw_name = pd.Series(None, index=df.index, dtype=object)

    df["PROVIDER_NAME"] = override_name.fillna(dim_name).fillna(raw_name)
    df["PARENT_FACILITY"] = override_parent.fillna(dim_name).fillna(df["PROVIDER_NAME"])

    # Deprecated provider records
    for remap in config.remaps:
        mask = df["PROVIDER_ID"] == remap.from_provider_id
        if not mask.any():
            continue
        parent = config.facility_overrides.get(
            remap.to_provider_id, (remap.provider_name, remap.provider_name)
        )[0]
        df.loc[mask, "PROVIDER_ID"] = remap.to_provider_id
        df.loc[mask, "PROVIDER_NAME"] = remap.provider_name
        df.loc[mask, "PARENT_FACILITY"] = parent
        df.loc[mask, "TIN"] = remap.tin
        logger.info(
            f"Remapped {int(mask.sum())} lines from provider {remap.from_provider_id} "
            f"to {remap.to_provider_id}"
        )

    # Duplicate display names for one legal facility
    df["PROVIDER_NAME"] = df["PROVIDER_NAME"].replace(config.name_aliases)

    unresolved = int(df["PROVIDER_NAME"].isna().sum())
    if unresolved:
        logger.warning(f"{unresolved} charge lines have no resolvable provider name")

    return df
