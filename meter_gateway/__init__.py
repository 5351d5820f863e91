"""
Meter Gateway - Synthetic telemetry engine for a simulated smart meter.

This package provides:
- Solar generation and household consumption simulation
- Per-meter background sample generation
- Offline-tolerant sample cache and durable mutation queue
- In-memory telemetry store with restore-on-startup

Remote meter data is read from Supabase.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
