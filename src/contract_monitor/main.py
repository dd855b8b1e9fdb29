"""
Contract Compliance Monitor - Main Entry Point

Runs the daily compliance scan and the read-side dashboard API.

Usage:
    contract-monitor                        # Scheduler + dashboard (default)
    contract-monitor --mode scheduler       # Only the periodic scan
    contract-monitor --mode dashboard       # Only the HTTP API
    contract-monitor --mode scan-once       # One scan pass, then exit

Configuration:
    The monitor reads configuration from:
    1. Environment variables
    2. A .env file in the working directory (does not override the environment)
    3. Command line arguments

Environment Variables:
    DATABASE_URL                   PostgreSQL connection string (required)
    SCAN_TIME                      Daily scan time, HH:MM local (default: 08:00)
    SCAN_ENABLED                   Run the periodic scan (default: true)
    SCAN_ON_STARTUP                Scan once immediately at startup (default: false)
    DASHBOARD_ENABLED              Serve the HTTP API (default: true)
    DASHBOARD_HOST                 Bind address (default: 0.0.0.0)
    DASHBOARD_PORT                 Bind port (default: 9060)
    DASHBOARD_API_KEY              Optional shared key for the HTTP API
    HEALTH_CHECK_INTERVAL_SECONDS  Interval of the health log loop (default: 60)
    LOG_LEVEL                      Logging level (DEBUG/INFO/WARNING/ERROR)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
import threading
from dataclasses import dataclass
from datetime import datetime, time, timezone
from pathlib import Path
from typing import Optional

# Configure logging before imports
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

MODES = ("all", "scheduler", "dashboard", "scan-once")


def parse_scan_time(value: str) -> time:
    """Parse HH:MM into a time of day."""
    hours, _, minutes = value.strip().partition(":")
    try:
        return time(int(hours), int(minutes or 0))
    except ValueError:
        raise ValueError(f"SCAN_TIME must be HH:MM, got {value!r}") from None


@dataclass
class MonitorConfig:
    """Complete monitor configuration."""

    # Database
    database_url: str = ""

    # Scan schedule (original cron: 0 8 * * *)
    scan_time: time = time(8, 0)
    scan_enabled: bool = True
    scan_on_startup: bool = False

    # Dashboard
    dashboard_enabled: bool = True
    dashboard_host: str = "0.0.0.0"
    dashboard_port: int = 9060

    # Main loop
    health_check_interval_seconds: float = 60

    @classmethod
    def from_env(cls) -> "MonitorConfig":
        """Load configuration from environment variables."""
        return cls(
            database_url=os.environ.get("DATABASE_URL", ""),
            scan_time=parse_scan_time(os.environ.get("SCAN_TIME", "08:00")),
            scan_enabled=os.environ.get("SCAN_ENABLED", "true").lower() == "true",
            scan_on_startup=os.environ.get("SCAN_ON_STARTUP", "false").lower() == "true",
            dashboard_enabled=os.environ.get("DASHBOARD_ENABLED", "true").lower() == "true",
            dashboard_host=os.environ.get("DASHBOARD_HOST", "0.0.0.0"),
            dashboard_port=int(os.environ.get("DASHBOARD_PORT", "9060")),
            health_check_interval_seconds=float(
                os.environ.get("HEALTH_CHECK_INTERVAL_SECONDS", "60")
            ),
        )


class ComplianceMonitor:
    """
    Main service orchestrator.

    Manages the lifecycle of all components:
    - Database connection and schema
    - Compliance scanner and its scheduler
    - Monitoring (health checks, stats, dashboard)
    """

    def __init__(self, config: MonitorConfig):
        self.config = config
        self._running = False
        self._shutdown_event = asyncio.Event()
        self._started_at: Optional[datetime] = None

        # Components (initialized on start)
        self._db = None
        self._contract_repo = None
        self._alert_repo = None
        self._scanner = None
        self._scheduler = None
        self._health_checker = None
        self._stats_collector = None
        self._dashboard = None
        self._dashboard_thread: Optional[threading.Thread] = None
        self._flask_server = None

    @property
    def scheduler(self):
        return self._scheduler

    def runs_scan_loop(self, mode: str) -> bool:
        """Whether the periodic scan loop should run in this mode."""
        return mode in ("all", "scheduler") and self.config.scan_enabled

    async def start(self, mode: str = "all") -> None:
        """
        Start the monitor.

        Args:
            mode: "all", "scheduler", "dashboard", or "scan-once"
        """
        if mode not in MODES:
            raise ValueError(f"Unknown mode: {mode}")

        logger.info("=" * 60)
        logger.info("CONTRACT COMPLIANCE MONITOR")
        logger.info("=" * 60)
        logger.info(f"Mode: {mode.upper()}")
        logger.info("=" * 60)

        self._running = True
        self._started_at = datetime.now(timezone.utc)
        self._shutdown_event.clear()

        # Setup signal handlers FIRST to catch early signals
        self._setup_signal_handlers()

        try:
            await self._init_database()
            self._init_engine()

            if self._shutdown_event.is_set():
                logger.info("Shutdown requested during startup")
                return

            if mode == "scan-once":
                summary = await self._scanner.run_scan(stop_event=self._shutdown_event)
                logger.info(
                    f"Scan finished: scanned={summary.contracts_scanned}, "
                    f"emitted={summary.alerts_emitted}, skipped={summary.alerts_skipped}, "
                    f"invalid={summary.invalid_contracts}, errors={summary.errors}"
                )
                return

            if self.runs_scan_loop(mode):
                await self._scheduler.start()

            if self._shutdown_event.is_set():
                logger.info("Shutdown requested during startup")
                return

            await self._init_monitoring(
                serve_dashboard=mode in ("all", "dashboard"),
                scan_loop=self.runs_scan_loop(mode),
            )

            logger.info("=" * 60)
            logger.info("Monitor started successfully")
            logger.info("Press Ctrl+C to stop")
            logger.info("=" * 60)

            # Run until shutdown
            await self._run_loop()

        except Exception as e:
            logger.exception(f"Fatal error: {e}")
            raise
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop the monitor gracefully."""
        if not self._running:
            return

        logger.info("Shutting down...")
        self._running = False
        self._shutdown_event.set()

        # Stop components in reverse order
        if self._dashboard:
            try:
                self._stop_dashboard()
            except Exception as e:
                logger.warning(f"Error stopping dashboard: {e}")

        if self._scheduler:
            try:
                await self._scheduler.stop()
            except Exception as e:
                logger.warning(f"Error stopping scheduler: {e}")

        if self._db:
            try:
                await self._db.close()
            except Exception as e:
                logger.warning(f"Error closing database: {e}")

        logger.info("Shutdown complete")

    async def _init_database(self) -> None:
        """Connect and make sure the schema exists."""
        from contract_monitor.storage import Database, DatabaseConfig

        if not self.config.database_url:
            raise ValueError("DATABASE_URL environment variable is required")

        self._db = Database(DatabaseConfig(url=self.config.database_url))
        await self._db.initialize()

        if not await self._db.health_check():
            raise RuntimeError("Database health check failed")

        await self._db.ensure_schema()
        logger.info("Database: Connected")

    def _init_engine(self) -> None:
        """Build repositories, scanner and scheduler."""
        from contract_monitor.core import (
            AlertEmitter,
            ComplianceScanner,
            ScanScheduler,
            SchedulerConfig,
        )
        from contract_monitor.storage import AlertRepository, ContractRepository

        self._contract_repo = ContractRepository(self._db)
        self._alert_repo = AlertRepository(self._db)
        self._scanner = ComplianceScanner(
            contracts=self._contract_repo,
            emitter=AlertEmitter(self._alert_repo),
        )
        self._scheduler = ScanScheduler(
            self._scanner,
            SchedulerConfig(
                run_at=self.config.scan_time,
                enabled=self.config.scan_enabled,
                run_on_startup=self.config.scan_on_startup,
            ),
        )
        logger.info(f"Scanner: Ready (daily at {self.config.scan_time.strftime('%H:%M')})")

    async def _init_monitoring(self, serve_dashboard: bool, scan_loop: bool = True) -> None:
        """Initialize monitoring components."""
        from contract_monitor.monitoring import Dashboard, HealthChecker, StatsCollector

        self._health_checker = HealthChecker(
            db=self._db,
            scheduler=self._scheduler,
            expect_scan_loop=scan_loop,
        )
        self._stats_collector = StatsCollector(self._contract_repo, self._alert_repo)

        if serve_dashboard and self.config.dashboard_enabled:
            self._dashboard = Dashboard(
                alert_repo=self._alert_repo,
                stats_collector=self._stats_collector,
                scheduler=self._scheduler,
                health_checker=self._health_checker,
                event_loop=asyncio.get_running_loop(),
            )
            self._start_dashboard()
        else:
            self._dashboard = None
            logger.info("Dashboard: Disabled")

        logger.info("Monitoring: Initialized")

    def _start_dashboard(self) -> None:
        """Start the Flask dashboard in a background thread.

        Flask runs in a separate thread to avoid blocking the asyncio event loop.
        """
        from werkzeug.serving import make_server

        def run_flask():
            try:
                if not self._running:
                    logger.info("Dashboard: Skipping start (shutdown in progress)")
                    return

                app = self._dashboard.create_app()
                self._flask_server = make_server(
                    host=self.config.dashboard_host,
                    port=self.config.dashboard_port,
                    app=app,
                    threaded=True,
                )

                if not self._running:
                    self._flask_server.server_close()
                    return

                logger.info(
                    f"Dashboard: http://{self.config.dashboard_host}:{self.config.dashboard_port}"
                )
                self._flask_server.serve_forever()

            except Exception as e:
                logger.error(f"Dashboard failed to start: {e}")

        self._dashboard_thread = threading.Thread(target=run_flask, daemon=True)
        self._dashboard_thread.start()

    def _stop_dashboard(self) -> None:
        """Stop the Flask dashboard gracefully."""
        if self._flask_server:
            logger.info("Dashboard: Shutting down...")
            self._flask_server.shutdown()
            self._flask_server.server_close()
            self._flask_server = None

        if self._dashboard_thread:
            if self._dashboard_thread.is_alive():
                self._dashboard_thread.join(timeout=5)
                if self._dashboard_thread.is_alive():
                    logger.warning("Dashboard thread did not stop cleanly")
            self._dashboard_thread = None

    async def _run_loop(self) -> None:
        """Main run loop: periodic health logging until shutdown."""
        from contract_monitor.monitoring import HealthStatus

        interval = self.config.health_check_interval_seconds

        while self._running:
            try:
                try:
                    await asyncio.wait_for(self._shutdown_event.wait(), timeout=interval)
                    break  # Shutdown requested
                except asyncio.TimeoutError:
                    pass

                if self._health_checker:
                    health = await self._health_checker.check_all()
                    unhealthy_components = [
                        c for c in health.components
                        if c.status == HealthStatus.UNHEALTHY
                    ]
                    if unhealthy_components:
                        logger.warning(
                            f"Health check failed: {[c.component for c in unhealthy_components]}"
                        )

                if self._scheduler and self._scheduler.last_summary:
                    summary = self._scheduler.last_summary
                    logger.info(
                        f"Stats: scans={self._scheduler.scans_completed}, "
                        f"last_emitted={summary.alerts_emitted}, "
                        f"last_errors={summary.errors}"
                    )

            except Exception as e:
                logger.error(f"Error in main loop: {e}")
                await asyncio.sleep(5)

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def handle_signal(sig):
            logger.info(f"Received signal {sig}")
            self._running = False
            self._shutdown_event.set()

        try:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass


def load_env_file(path: str = ".env") -> None:
    """Load environment variables from .env file if it exists."""
    env_path = Path(path)
    if env_path.exists():
        logger.info(f"Loading environment from {env_path}")
        with open(env_path) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, _, value = line.partition("=")
                    value = value.strip().strip('"').strip("'")
                    os.environ.setdefault(key.strip(), value)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Contract Compliance Monitor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--mode",
        choices=MODES,
        default="all",
        help="Which services to run (default: all)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level",
    )
    return parser.parse_args(argv)


async def main_async(args: argparse.Namespace) -> int:
    """Async main function."""
    try:
        config = MonitorConfig.from_env()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    if not config.database_url:
        logger.error("DATABASE_URL environment variable is required")
        return 1

    monitor = ComplianceMonitor(config)

    try:
        await monitor.start(mode=args.mode)
        return 0
    except KeyboardInterrupt:
        logger.info("Shutdown requested")
        return 0
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


def main() -> int:
    """Main entry point."""
    load_env_file()
    args = parse_args()

    if args.log_level:
        logging.getLogger().setLevel(getattr(logging, args.log_level))

    try:
        return asyncio.run(main_async(args))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
