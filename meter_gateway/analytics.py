"""Energy rollups over sample history.

Samples carry average power (kW) over their interval; energy per sample
is power x interval / 60 in kWh.
"""

import logging
from typing import Iterable

import pandas as pd

from meter_gateway.models import EnergySample

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = ["generation_kwh", "consumption_kwh", "net_export_kwh", "samples"]


def samples_to_frame(samples: Iterable[EnergySample]) -> pd.DataFrame:
    """Convert samples to a DataFrame indexed by timestamp, oldest first."""
    records = [s.to_dict() for s in samples]
    if not records:
        return pd.DataFrame(
            columns=["id", "meter_id", "generation_kw", "consumption_kw", "net_export_kw", "interval_minutes"],
            index=pd.DatetimeIndex([], name="timestamp"),
        )

    df = pd.DataFrame(records)
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    return df.set_index("timestamp").sort_index()


def daily_energy_summary(samples: Iterable[EnergySample]) -> pd.DataFrame:
    """
    Sum energy per calendar day (UTC).

    Returns:
        DataFrame indexed by date with generation, consumption and net
        export in kWh and the number of samples per day
    """
    df = samples_to_frame(samples)
    if df.empty:
        return pd.DataFrame(columns=SUMMARY_COLUMNS, index=pd.Index([], name="date"))

    hours = df["interval_minutes"] / 60
    energy = pd.DataFrame(
        {
            "generation_kwh": df["generation_kw"] * hours,
            "consumption_kwh": df["consumption_kw"] * hours,
            "net_export_kwh": df["net_export_kw"] * hours,
            "samples": 1,
        },
        index=df.index,
    )

    summary = energy.groupby(energy.index.date).sum()
    summary.index.name = "date"
    logger.debug("Summarised %d samples into %d days", len(df), len(summary))
    return summary


def total_energy(samples: Iterable[EnergySample]) -> dict[str, float]:
    """Total generation, consumption and net export in kWh."""
    summary = daily_energy_summary(samples)
    return {
        "generation_kwh": round(float(summary["generation_kwh"].sum()), 3),
        "consumption_kwh": round(float(summary["consumption_kwh"].sum()), 3),
        "net_export_kwh": round(float(summary["net_export_kwh"].sum()), 3),
    }
