"""Scheduled refresh and verification runs.

Each refresh is one complete, independent run: fetch a snapshot from every
location, install it as the current snapshot, compute today's prediction
(freezing it if the decision window has closed) and log the fetch. Run it
every 30 minutes; the 18:00 run is the one that turns tomorrow's forecast
from preliminary to refined.

    # Every 30 minutes
    */30 * * * * python -m dawnpatrol.cache.refresh

    # After the decision window closes
    15 8 * * * python -m dawnpatrol.cache.refresh --verify today

Usage:
    python -m dawnpatrol.cache.refresh                    # Refresh and predict
    python -m dawnpatrol.cache.refresh --verify 2025-07-14
    python -m dawnpatrol.cache.refresh --status           # Show store status
    python -m dawnpatrol.cache.refresh --export           # Verifications to CSV
"""

import argparse
import logging
import sys
import time
from dataclasses import dataclass
from datetime import date, datetime, time as dtime, timedelta
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

from dawnpatrol.cache.database import DEFAULT_DB_PATH, PredictionStore
from dawnpatrol.cache.predictor import PredictionLifecycle
from dawnpatrol.evaluation.accuracy import AccuracyReport, records_to_frame
from dawnpatrol.evaluation.verification import VerificationEngine, VerificationRecord
from dawnpatrol.features.windows import window_bounds
from dawnpatrol.pipelines.aggregator import SOURCE_ERRORS, WeatherAggregator, build_default_aggregator
from dawnpatrol.pipelines.ecowitt import EcowittSensor
from dawnpatrol.pipelines.windalert import WindAlertSensor
from dawnpatrol.utils.base import SensorProvider
from dawnpatrol.utils.config import ConfigurationError, PredictionConfig, load_credentials
from dawnpatrol.utils.io import get_data_path

logger = logging.getLogger(__name__)

REFRESH_INTERVAL = timedelta(minutes=30)
EVENING_REFRESH = dtime(18, 0)


@dataclass
class RefreshResult:
    """Result of a refresh operation."""

    total: int
    success: int
    failed: int
    skipped: int
    duration_ms: int
    reliability: str = "low"
    recommendation: Optional[str] = None
    probability: Optional[int] = None

    @property
    def success_rate(self) -> float:
        """Percentage of locations fetched successfully."""
        if self.total == 0:
            return 0.0
        return (self.success / self.total) * 100

    def __str__(self) -> str:
        call = (
            f"{self.recommendation} {self.probability}%"
            if self.recommendation is not None else "no prediction"
        )
        return (
            f"Refresh complete: {self.success}/{self.total} locations, "
            f"{self.failed} failed, {self.skipped} skipped, "
            f"reliability {self.reliability}, {call} "
            f"({self.duration_ms}ms)"
        )


def next_refresh_time(
    now: datetime,
    interval: timedelta = REFRESH_INTERVAL,
    evening: dtime = EVENING_REFRESH,
    tz: str = "America/Denver",
) -> datetime:
    """Next scheduled refresh strictly after now.

    Ticks are aligned to local midnight in multiples of interval. The
    evening refresh is forced even when it does not fall on a tick.
    """
    zone = ZoneInfo(tz)
    local = now.astimezone(zone)
    midnight = datetime.combine(local.date(), dtime(0, 0), tzinfo=zone)
    elapsed = local - midnight
    ticks = int(elapsed // interval) + 1
    next_tick = midnight + ticks * interval

    evening_at = datetime.combine(local.date(), evening, tzinfo=zone)
    if local < evening_at < next_tick:
        return evening_at
    return next_tick


def run_refresh(
    store: PredictionStore,
    aggregator: WeatherAggregator,
    lifecycle: PredictionLifecycle,
) -> RefreshResult:
    """Fetch a snapshot, install it, compute today's prediction and log the run.

    Args:
        store: Store receiving the fetch log
        aggregator: Aggregator producing the snapshot
        lifecycle: Lifecycle that owns the snapshot and today's prediction

    Returns:
        RefreshResult with per-location counts and today's call
    """
    start_time = time.time()
    total = len(aggregator.locations)

    logger.info("=" * 60)
    logger.info("Starting refresh...")
    logger.info(f"Database: {store.db_path}")
    logger.info(f"Locations: {total}")
    logger.info("=" * 60)

    snapshot = aggregator.fetch_snapshot()
    success = sum(1 for s in snapshot.series if not s.is_empty)
    for i, series in enumerate(snapshot.series, 1):
        status = f"{len(series)} samples from {series.source}" if not series.is_empty else "FAILED"
        logger.info(f"[{i}/{total}] {series.location.name}: {status}")

    lifecycle.update_snapshot(snapshot)
    prediction = lifecycle.get_todays_prediction()

    duration_ms = int((time.time() - start_time) * 1000)
    store.log_fetch(
        source="forecast",
        status="success" if success == total else ("degraded" if success else "error"),
        records_added=sum(len(s) for s in snapshot.series),
        duration_ms=duration_ms,
        error_message="; ".join(snapshot.errors) or None,
    )

    result = RefreshResult(
        total=total,
        success=success,
        failed=total - success,
        skipped=0,
        duration_ms=duration_ms,
        reliability=snapshot.reliability.value,
        recommendation=prediction.recommendation.value,
        probability=prediction.probability,
    )
    logger.info(str(result))
    return result


def build_sensor(credentials: dict) -> Optional[SensorProvider]:
    """Ecowitt when its keys are configured, else WindAlert, else None."""
    if all(credentials.get(k) for k in ("ECOWITT_APPLICATION_KEY", "ECOWITT_API_KEY", "ECOWITT_MAC")):
        return EcowittSensor(
            application_key=credentials["ECOWITT_APPLICATION_KEY"],
            api_key=credentials["ECOWITT_API_KEY"],
            mac=credentials["ECOWITT_MAC"],
        )
    if credentials.get("WINDALERT_TOKEN"):
        return WindAlertSensor(token=credentials["WINDALERT_TOKEN"])
    return None


def run_verification(
    store: PredictionStore,
    sensor: SensorProvider,
    lifecycle: PredictionLifecycle,
    target_date: date,
) -> Optional[VerificationRecord]:
    """Verify the frozen prediction of target_date against sensor history.

    Returns:
        The verification record, or None when there is no frozen prediction
        for the date or the sensor returned nothing for the window
    """
    existing = store.get_verification(target_date)
    if existing is not None:
        logger.info(f"{target_date} already verified: {existing}")
        return existing

    prediction = store.get_frozen_prediction(target_date)
    if prediction is None:
        logger.warning(f"No frozen prediction for {target_date}; nothing to verify")
        return None

    cfg = lifecycle.config
    start, end = window_bounds(target_date, cfg.decision_start, cfg.decision_end, cfg.timezone)
    start_time = time.time()
    try:
        samples = sensor.fetch_history(start, end)
    except SOURCE_ERRORS as e:
        store.log_fetch(sensor.name, "error", 0, int((time.time() - start_time) * 1000), str(e))
        logger.warning(f"Sensor history unavailable for {target_date}: {e}")
        return None
    store.log_fetch(sensor.name, "success", len(samples), int((time.time() - start_time) * 1000))

    engine = VerificationEngine(store, cfg)
    return engine.verify(prediction, samples, target_date, now=lifecycle.clock.now())


def export_verifications(store: PredictionStore, path: Optional[Path] = None) -> Path:
    """Write every verification record to CSV for offline analysis.

    Args:
        store: Store holding the verifications
        path: Output file. Defaults to data/reports/verifications.csv

    Returns:
        Path written
    """
    path = Path(path) if path else get_data_path("reports") / "verifications.csv"
    df = records_to_frame(store.list_verifications())
    df.to_csv(path, index=False)
    logger.info(f"Exported {len(df)} verification records to {path}")
    return path


def get_store_status(db_path: Optional[Path] = None) -> dict:
    """Get current store status.

    Args:
        db_path: Path to DuckDB file. Uses default if not specified.

    Returns:
        Dict with store statistics, recent fetches and accuracy
    """
    store = PredictionStore(db_path or DEFAULT_DB_PATH)

    try:
        stats = store.get_stats()
        report = AccuracyReport.from_records(store.list_verifications())
        return {
            **stats,
            "recent_fetches": store.get_recent_fetches(5),
            "accuracy": report,
        }

    finally:
        store.close()


def print_status(status: dict) -> None:
    """Print store status in human-readable format."""
    print()
    print("=" * 60)
    print("Dawn Patrol Store Status")
    print("=" * 60)
    print(f"Database: {status['db_path']}")
    print()
    print(f"Frozen predictions: {status['prediction_count']}")
    print(f"Verifications: {status['verification_count']}")
    print(f"Fetch log entries: {status['fetch_count']}")

    if status["latest_frozen_date"]:
        print(f"Latest frozen date: {status['latest_frozen_date']}")
    if status["snapshot_fetched_at"]:
        print(f"Current snapshot: {status['snapshot_fetched_at']} ({status['snapshot_reliability']})")

    print()
    print("Recent Fetches:")
    print("-" * 60)

    for entry in status["recent_fetches"]:
        error = f" - {entry.error_message}" if entry.error_message else ""
        print(
            f"  {entry.timestamp:%Y-%m-%d %H:%M} {entry.source:<10} {entry.status:<9} "
            f"{entry.records_added:>5} records {entry.duration_ms:>6}ms{error}"
        )

    print()
    print(status["accuracy"].summary())
    print("=" * 60)


def _parse_date(value: str) -> str:
    if value != "today":
        date.fromisoformat(value)
    return value


def main():
    """CLI entry point for scheduled refresh and verification."""
    parser = argparse.ArgumentParser(
        description="Refresh the dawn patrol katabatic prediction",
        epilog="""
Examples:
  python -m dawnpatrol.cache.refresh                     # Refresh and predict
  python -m dawnpatrol.cache.refresh --verify today      # Verify today's dawn
  python -m dawnpatrol.cache.refresh --status            # Show status

Cron setup (every 30 minutes, verification after the decision window):
  */30 * * * * cd /path/to/dawnpatrol && python -m dawnpatrol.cache.refresh >> /var/log/dawnpatrol.log 2>&1
  15 8 * * * cd /path/to/dawnpatrol && python -m dawnpatrol.cache.refresh --verify today
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--verify",
        type=_parse_date,
        metavar="DATE",
        default=None,
        help="Verify the frozen prediction for DATE (YYYY-MM-DD or 'today')",
    )
    parser.add_argument(
        "--cleanup",
        type=int,
        metavar="DAYS",
        default=None,
        help="Remove fetch log entries older than DAYS",
    )
    parser.add_argument(
        "--export",
        action="store_true",
        help="Export verification records to data/reports/verifications.csv",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show current store status",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help=f"Database path (default: {DEFAULT_DB_PATH})",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress output except errors",
    )

    args = parser.parse_args()

    # Configure logging
    if args.quiet:
        level = logging.ERROR
    elif args.verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Handle status command
    if args.status:
        status = get_store_status(args.db)
        print_status(status)
        return 0

    try:
        credentials = load_credentials()
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    config = PredictionConfig()
    store = PredictionStore(args.db or DEFAULT_DB_PATH)

    try:
        sensor = build_sensor(credentials)
        lifecycle = PredictionLifecycle(store=store, config=config, sensor=sensor)

        if args.export:
            print(export_verifications(store))
            return 0

        if args.cleanup is not None:
            store.cleanup(retention_days=args.cleanup)
            return 0

        if args.verify:
            if sensor is None:
                logger.error(
                    "No sensor configured: set DAWNPATROL_ECOWITT_* or DAWNPATROL_WINDALERT_TOKEN"
                )
                return 1
            if args.verify == "today":
                target = lifecycle.clock.now().date()
            else:
                target = date.fromisoformat(args.verify)
            record = run_verification(store, sensor, lifecycle, target)
            if record is None:
                return 1
            print(record)
            print(record.verdict)
            print(f"Recalibration: {record.recalibration}")
            return 0

        aggregator = build_default_aggregator(credentials, timezone_name=config.timezone)
        result = run_refresh(store, aggregator, lifecycle)
        return 1 if result.success == 0 else 0

    except Exception as e:
        logger.error(f"Refresh failed: {e}")
        return 1

    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
