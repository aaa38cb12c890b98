"""
Utility functions for the Post-acute Care Dashboard pipeline.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, date
from typing import Iterable, Union
import pandas as pd


# Configure logging
logger = logging.getLogger(__name__)


def setup_logging(level: int = logging.INFO) -> None:
    """
    Configure logging for the pipeline.

    Args:
        level: Logging level (default: INFO)
    """
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        handlers=[logging.StreamHandler()]
    )


def to_pydate(x: Union[datetime, date, pd.Timestamp]) -> date:
    """
    Convert various date types to Python date object.

    Args:
        x: Date value (datetime, date, or pandas Timestamp)

    Returns:
        Python date object

    Raises:
        TypeError: If input type is not supported
    """
    if hasattr(x, "to_pydatetime"):
        return x.to_pydatetime().date()
    if isinstance(x, datetime):
        return x.date()
    if isinstance(x, date):
        return x
    raise TypeError(f"Unsupported date type: {type(x)}")


def id_key(s: pd.Series) -> pd.Series:
    """
    Normalize identifiers to strings so numeric and text ids compare equal.

    Integral floats (e.g. 3142.0 read back from a nullable column) lose their
    decimal part. Text ids keep leading zeros.

    Args:
        s: Identifier series (int, float or str)

    Returns:
        Object series of strings, None where the id is missing
    """
    def _key(value):
        if pd.isna(value):
            return None
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value).strip()

    return s.map(_key).astype(object)


def normalize_dates(df: pd.DataFrame, columns: Iterable[str]) -> pd.DataFrame:
    """
    Coerce the given columns to midnight-normalized datetime64 values.

    Columns missing from the frame are skipped.

    Args:
        df: Input DataFrame
        columns: Date column names

    Returns:
        Copy of the DataFrame with the date columns normalized
    """
    out = df.copy()
    for c in columns:
        if c in out.columns:
            out[c] = pd.to_datetime(out[c]).dt.normalize()
    return out


def day_ordinal(s: pd.Series) -> pd.Series:
    """Whole days since the epoch for a datetime64 series (NaT stays missing)."""
    return (s - pd.Timestamp("1970-01-01")).dt.days


@dataclass(frozen=True)
class ReportWindow:
    """Coverage window of a pipeline run, stamped on every output row."""
    start_date: date
    end_date: date
    run_date: datetime

    def as_columns(self) -> dict:
        return {
            "RPT_START_DATE": pd.Timestamp(self.start_date),
            "RPT_END_DATE": pd.Timestamp(self.end_date),
            "RPT_RUN_DATE": pd.Timestamp(self.run_date),
        }


def calculate_report_window(charges: pd.DataFrame, run_date: datetime = None) -> ReportWindow:
    """
    Calculate the report coverage window from repaired charge lines.

    The window runs from the earliest DOS_FROM to the latest DOS_TO seen
    across all charge lines of the run.

    Args:
        charges: Charge lines after date repair
        run_date: Run timestamp (defaults to now)

    Returns:
        ReportWindow for the run

    Raises:
        ValueError: If no valid service dates are available
    """
    logger.info("Calculating report window from charge lines")

    min_dt = pd.to_datetime(charges["DOS_FROM"]).min() if len(charges) else pd.NaT
    max_dt = pd.to_datetime(charges["DOS_TO"]).max() if len(charges) else pd.NaT

    if pd.isna(min_dt) or pd.isna(max_dt):
        raise ValueError("DOS range is invalid. Cannot determine report window.")

    window = ReportWindow(
        start_date=to_pydate(min_dt),
        end_date=to_pydate(max_dt),
        run_date=run_date or datetime.now(),
    )

    logger.info(f"Report window: {window.start_date} to {window.end_date}")
    return window


class Timer:
    """Context manager for timing code execution."""

    def __init__(self, name: str = "Operation", log_level: int = logging.INFO):
        """
        Initialize timer.

        Args:
            name: Name of the operation being timed
            log_level: Logging level for output
        """
        self.name = name
        self.log_level = log_level
        self.start_time = None
        self.end_time = None

    def __enter__(self):
        """Start timer."""
        self.start_time = datetime.now()
        logger.log(self.log_level, f"{self.name} started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """End timer and log duration."""
        self.end_time = datetime.now()
        duration = (self.end_time - self.start_time).total_seconds()
        logger.log(self.log_level, f"{self.name} completed in {duration:.2f} seconds")

    @property
    def elapsed(self) -> float:
        """Get elapsed time in seconds."""
        if self.start_time is None:
            return 0.0
        end = self.end_time or datetime.now()
        return (end - self.start_time).total_seconds()
