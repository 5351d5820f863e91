"""
Meter Telemetry Simulator - Command Line Interface

Simulates a smart meter's solar generation and household consumption
and keeps the offline cache and mutation queue in step.

Usage:
    # Generate a single sample
    python run_simulator.py --once --meter-id meter-001

    # Generate historical data (with a daily kWh summary)
    python run_simulator.py --historical --start 2024-01-01 --end 2024-01-02 --summary

    # Restore a user's meters from Supabase and keep generating
    python run_simulator.py --continuous --user-id <uuid> --interval 900

    # Generate continuously for one meter without Supabase
    python run_simulator.py --continuous --meter-id meter-001 --interval 5 --duration 60

    # Push queued offline mutations to Supabase
    python run_simulator.py --sync

    # Show offline cache status
    python run_simulator.py --status

    # Use custom config file
    python run_simulator.py --config config.json --continuous
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
# Must happen before configuration reads env overrides
load_dotenv()

from meter_gateway.analytics import daily_energy_summary, total_energy  # noqa: E402
from meter_gateway.config import DEFAULT_CONFIG, GatewayConfig  # noqa: E402
from meter_gateway.generator import TelemetryGenerator  # noqa: E402
from meter_gateway.models import EnergySample  # noqa: E402
from meter_gateway.scheduler import GenerationScheduler  # noqa: E402
from meter_gateway.storage import (  # noqa: E402
    JsonFileStore,
    MutationSync,
    OfflineCache,
    SupabaseMeterRepository,
)
from meter_gateway.store import TelemetryStore  # noqa: E402

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


def create_cache(config: GatewayConfig) -> OfflineCache:
    """Create the offline cache from configuration."""
    return OfflineCache(
        JsonFileStore(config.cache.directory),
        max_samples=config.cache.max_samples,
        key_prefix=config.cache.key_prefix,
    )


def create_repository(config: GatewayConfig) -> Optional[SupabaseMeterRepository]:
    """Create the Supabase repository, or None when credentials are missing."""
    if not (config.remote.supabase_url and config.remote.supabase_key):
        logger.warning("SUPABASE_URL/SUPABASE_KEY not set, running without remote repository")
        return None
    return SupabaseMeterRepository.from_config(config.remote)


def write_samples(samples: list[EnergySample], output_file: Optional[str]) -> None:
    """Append samples as JSON lines to a file, or print them to stdout."""
    if output_file:
        try:
            with open(output_file, "a") as f:
                for s in samples:
                    f.write(s.to_json(indent=None) + "\n")
        except OSError as e:
            logger.error("Failed to write to %s: %s", output_file, e)
    else:
        for s in samples:
            print(s.to_json())


def run_once(config: GatewayConfig, meter_id: str) -> None:
    """Generate a single sample."""
    generator = TelemetryGenerator(seed=config.seed)
    sample = generator.generate_sample(
        meter_id, config=config.generator, interval_minutes=config.interval_minutes
    )
    write_samples([sample], config.output_file)


def generate_historical(
    config: GatewayConfig,
    meter_id: str,
    start: datetime,
    end: datetime,
    summary: bool = False,
) -> None:
    """Generate historical data for a time range."""
    generator = TelemetryGenerator(seed=config.seed)
    samples = generator.generate_range(
        meter_id, start, end, config.interval_minutes, config.generator
    )

    logger.info("Generated %d samples from %s to %s", len(samples), start, end)

    if config.output_file:
        Path(config.output_file).write_text("")
    write_samples(samples, config.output_file)
    if config.output_file:
        logger.info("Data written to %s", config.output_file)

    if summary:
        print(daily_energy_summary(samples).round(3).to_string())
        print(json.dumps(total_energy(samples), indent=2))


async def run_continuous(
    config: GatewayConfig,
    user_id: Optional[str],
    meter_id: Optional[str],
    duration: Optional[float] = None,
    backfill_hours: float = 0,
) -> None:
    """Restore meters and generate samples until stopped."""
    cache = create_cache(config)
    store = TelemetryStore(
        create_repository(config),
        cache=cache,
        preset=config.preset,
        window_days=config.window_days,
    )

    def output(samples: list[EnergySample]) -> None:
        store.ingest(samples)
        write_samples(samples, config.output_file)

    scheduler = GenerationScheduler(
        TelemetryGenerator(seed=config.seed),
        output_callback=output,
        interval_seconds=config.interval_seconds,
        interval_minutes=config.interval_minutes,
    )
    store.scheduler = scheduler

    if user_id:
        await store.restore(user_id)
        if store.current_meter is None:
            logger.warning("No current meter after restore for user %s", user_id)
    if meter_id and not scheduler.is_running(meter_id):
        scheduler.start(meter_id, config.generator)

    if not scheduler.running_meters():
        logger.error("Nothing to generate: provide --user-id with registered meters or --meter-id")
        return

    if backfill_hours > 0:
        if store.current_meter is not None:
            store.backfill(hours=backfill_hours)
        else:
            end = datetime.now(timezone.utc)
            store.ingest(
                scheduler.generator.generate_range(
                    meter_id,
                    end - timedelta(hours=backfill_hours),
                    end,
                    config.interval_minutes,
                    config.generator,
                )
            )

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop_event.set)
        except NotImplementedError:
            pass

    logger.info("Generating for meters: %s", ", ".join(scheduler.running_meters()))
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=duration)
    except asyncio.TimeoutError:
        logger.info("Duration reached, stopping")
    finally:
        scheduler.stop_all()
        await store.wait_for_cache_writes()
        logger.info("Stopped with %d samples in memory", len(store.energy_data))


async def run_sync(config: GatewayConfig) -> int:
    """Push queued mutations. Returns the number still pending."""
    repository = create_repository(config)
    if repository is None:
        logger.error("Cannot sync without Supabase credentials")
        return -1
    successful, pending = await MutationSync(create_cache(config), repository).flush()
    logger.info("Synced %d mutations, %d pending", successful, pending)
    return pending


async def show_status(config: GatewayConfig) -> None:
    """Print offline cache status."""
    cache = create_cache(config)
    last_sync = await cache.get_last_sync()
    status = {
        "cache_directory": config.cache.directory,
        "cached_samples": len(await cache.get_cached_samples()),
        "queued_mutations": len(await cache.get_queued_mutations()),
        "last_sync": last_sync.isoformat() if last_sync else None,
    }
    print(json.dumps(status, indent=2))


def generate_sample_config(output_path: Path) -> None:
    """Generate a sample configuration file."""
    DEFAULT_CONFIG.to_file(output_path)
    logger.info("Sample config written to %s", output_path)


def main():
    parser = argparse.ArgumentParser(
        description="Meter Telemetry Simulator - Generate realistic smart meter energy data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    # Mode selection
    mode_group = parser.add_mutually_exclusive_group(required=True)
    mode_group.add_argument(
        "--once",
        action="store_true",
        help="Generate a single sample and exit",
    )
    mode_group.add_argument(
        "--continuous",
        action="store_true",
        help="Restore meters and generate samples at the configured interval",
    )
    mode_group.add_argument(
        "--historical",
        action="store_true",
        help="Generate historical data for a time range",
    )
    mode_group.add_argument(
        "--sync",
        action="store_true",
        help="Push queued offline mutations to Supabase",
    )
    mode_group.add_argument(
        "--status",
        action="store_true",
        help="Show offline cache status and exit",
    )
    mode_group.add_argument(
        "--generate-config",
        action="store_true",
        help="Generate a sample configuration file",
    )

    # Configuration options
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to configuration JSON file",
    )
    parser.add_argument(
        "--preset",
        choices=["small", "medium", "large", "commercial"],
        help="Meter profile preset (default: 5 kW residential profile)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between generated samples in continuous mode (default: 900)",
    )
    parser.add_argument(
        "--interval-minutes",
        type=int,
        default=None,
        help="Interval recorded on each sample and used for historical spacing (default: 15)",
    )
    parser.add_argument(
        "--duration",
        type=float,
        help="Duration in seconds for continuous mode (default: run forever)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Output file path (JSON lines format)",
    )
    parser.add_argument(
        "--user-id",
        type=str,
        default=None,
        help="User whose meters are restored from Supabase",
    )
    parser.add_argument(
        "--meter-id",
        type=str,
        default=None,
        help="Meter to simulate (default for --once/--historical: meter-001)",
    )
    parser.add_argument(
        "--backfill-hours",
        type=float,
        default=0,
        help="Hours of history to generate before continuous generation starts",
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Random seed for reproducibility",
    )

    # Historical mode options
    parser.add_argument(
        "--start",
        type=str,
        help="Start date for historical data (YYYY-MM-DD starts at midnight, or YYYY-MM-DD HH:MM)",
    )
    parser.add_argument(
        "--end",
        type=str,
        help="End date for historical data (YYYY-MM-DD is exclusive/ends at midnight, or YYYY-MM-DD HH:MM for exact time)",
    )
    parser.add_argument(
        "--summary",
        action="store_true",
        help="Print a daily kWh summary after historical generation",
    )

    # Verbosity
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress log output",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    # Configure logging level
    if args.quiet:
        logging.getLogger().setLevel(logging.WARNING)
    elif args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    # Load or create configuration
    if args.config and not args.generate_config:
        if not args.config.exists():
            parser.error(f"Configuration file not found: {args.config}")
        config = GatewayConfig.from_file(args.config)
        logger.info("Loaded config from %s", args.config)
    else:
        config = GatewayConfig()

    # Apply command line overrides (only if explicitly provided)
    if args.preset is not None:
        config.preset = args.preset
    if args.interval is not None:
        config.interval_seconds = args.interval
    if args.interval_minutes is not None:
        config.interval_minutes = args.interval_minutes
    if args.output is not None:
        config.output_file = str(args.output)
    if args.user_id is not None:
        config.user_id = args.user_id
    if args.seed is not None:
        config.seed = args.seed

    # Execute selected mode
    if args.generate_config:
        output_path = args.config or Path("config.json")
        generate_sample_config(output_path)

    elif args.once:
        run_once(config, args.meter_id or "meter-001")

    elif args.continuous:
        if not config.user_id and not args.meter_id:
            parser.error("--continuous requires --user-id or --meter-id")
        asyncio.run(
            run_continuous(
                config,
                config.user_id or None,
                args.meter_id,
                args.duration,
                args.backfill_hours,
            )
        )

    elif args.sync:
        pending = asyncio.run(run_sync(config))
        if pending != 0:
            sys.exit(1)

    elif args.status:
        asyncio.run(show_status(config))

    elif args.historical:
        if not args.start or not args.end:
            parser.error("--historical requires --start and --end dates")
        if config.interval_minutes <= 0:
            parser.error("--interval-minutes must be positive for historical mode")

        def parse_date(date_str: str) -> datetime:
            """Parse a date string in YYYY-MM-DD or YYYY-MM-DD HH:MM[:SS] format (UTC)."""
            try:
                dt = datetime.fromisoformat(date_str)
            except ValueError:
                parser.error(
                    f"Invalid date format {date_str!r}. Use YYYY-MM-DD or YYYY-MM-DD HH:MM"
                )
                raise  # pragma: no cover - parser.error exits

            # Normalize to UTC-aware; treat all historical timestamps as UTC
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return dt

        start = parse_date(args.start)
        end = parse_date(args.end)

        # A date-only end is exclusive: stop one interval before midnight.
        if " " not in args.end and "T" not in args.end:
            end = end - timedelta(minutes=config.interval_minutes)

        if end < start:
            parser.error("--end must be after --start for historical mode")

        generate_historical(config, args.meter_id or "meter-001", start, end, args.summary)


if __name__ == "__main__":
    main()
