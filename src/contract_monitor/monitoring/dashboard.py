"""
Read-side HTTP API for alerts and dashboard stats.

Provides a Flask application that runs in a background thread next to the
asyncio scheduler. Async repository calls are dispatched onto the main event
loop (where the asyncpg pool lives).

Callers are authenticated upstream; the gateway forwards the caller's
identity in X-User-Id / X-User-Role headers. Every read applies the
visibility filter for that identity.
"""
from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import os
from datetime import datetime
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from flask import Flask, Response, abort, jsonify, request

from contract_monitor.storage.models import AlertRecord
from contract_monitor.visibility import Role, Viewer, VisibilityFilter

if TYPE_CHECKING:
    from contract_monitor.core.scheduler import ScanScheduler
    from contract_monitor.monitoring.health_checker import HealthChecker
    from contract_monitor.monitoring.metrics import StatsCollector
    from contract_monitor.storage import AlertRepository

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"
USER_ROLE_HEADER = "X-User-Role"
MAX_ALERT_LIMIT = 500


def require_api_key(f: Callable) -> Callable:
    """
    Decorator to require API key authentication.

    If DASHBOARD_API_KEY is set in environment, requests must include
    either the X-API-Key header or an api_key query parameter.
    If it is not set, this check is disabled.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        expected = os.environ.get("DASHBOARD_API_KEY")
        if not expected:
            return f(*args, **kwargs)

        provided_key = request.headers.get("X-API-Key") or request.args.get("api_key")
        if not provided_key or provided_key != expected:
            logger.warning(f"Unauthorized API access attempt from {request.remote_addr}")
            abort(401)

        return f(*args, **kwargs)

    return decorated


def current_viewer() -> Optional[Viewer]:
    """Build the Viewer from gateway headers, or None if absent/invalid."""
    raw_id = request.headers.get(USER_ID_HEADER)
    if raw_id is None:
        return None
    try:
        user_id = int(raw_id)
    except ValueError:
        return None
    return Viewer(user_id=user_id, role=Role.parse(request.headers.get(USER_ROLE_HEADER)))


def require_viewer(f: Callable) -> Callable:
    """Decorator that rejects requests without a caller identity and passes the Viewer in."""
    @wraps(f)
    def decorated(*args, **kwargs):
        viewer = current_viewer()
        if viewer is None:
            return jsonify({"error": "Caller identity required"}), 401
        return f(viewer, *args, **kwargs)

    return decorated


def serialize_alert(alert: AlertRecord) -> Dict[str, Any]:
    return {
        "id": alert.id,
        "contract_id": alert.contract_id,
        "contract_title": alert.contract_title,
        "alert_type": alert.alert_type.value,
        "message": alert.message,
        "is_read": alert.is_read,
        "created_at": alert.created_at.isoformat() if alert.created_at else None,
    }


class Dashboard:
    """
    Dashboard web application.

    Endpoints:
        GET  /health                    - Component health
        GET  /api/alerts                - Alerts visible to the caller, newest first
        POST /api/alerts/<id>/read      - Acknowledge an alert (PUT also accepted)
        GET  /api/dashboard/stats       - Contract and unread-alert counts
        POST /api/scan                  - Run a scan now (admin only)
        GET  /api/scan/status           - Scheduler state and last scan summary

    Usage:
        dashboard = Dashboard(alert_repo=alerts, stats_collector=stats, scheduler=scheduler)
        app = dashboard.create_app()
        app.run(port=9060)
    """

    def __init__(
        self,
        alert_repo: Optional["AlertRepository"] = None,
        stats_collector: Optional["StatsCollector"] = None,
        scheduler: Optional["ScanScheduler"] = None,
        health_checker: Optional["HealthChecker"] = None,
        event_loop: Optional[asyncio.AbstractEventLoop] = None,
        clock: Callable[[], datetime] = datetime.now,
        scan_timeout: float = 600.0,
    ) -> None:
        """
        Initialize the dashboard.

        Args:
            alert_repo: Alert ledger for reads and mark-read
            stats_collector: StatsCollector for /api/dashboard/stats
            scheduler: ScanScheduler for manual scans and status
            health_checker: HealthChecker instance
            event_loop: Main asyncio event loop. Flask runs in a separate
                        thread, so async calls must go through
                        run_coroutine_threadsafe() on this loop.
            clock: Source of "today" for stats
            scan_timeout: Seconds to wait for a manual scan
        """
        self._alert_repo = alert_repo
        self._stats_collector = stats_collector
        self._scheduler = scheduler
        self._health_checker = health_checker
        self._event_loop = event_loop
        self._clock = clock
        self._scan_timeout = scan_timeout

    def _run_async(self, coro, timeout: float = 10.0) -> Any:
        """
        Run an async coroutine from the Flask thread safely.

        Raises:
            RuntimeError: If event loop is not running (shutdown in progress)
            TimeoutError: If operation times out
        """
        if self._event_loop is None:
            # No main loop (tests, standalone): run on a throwaway loop
            loop = asyncio.new_event_loop()
            try:
                return loop.run_until_complete(coro)
            finally:
                loop.close()

        if self._event_loop.is_closed() or not self._event_loop.is_running():
            coro.close()
            raise RuntimeError("Event loop is not running (shutdown in progress)")

        future = asyncio.run_coroutine_threadsafe(coro, self._event_loop)
        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            logger.error(f"Async operation timed out after {timeout}s")
            raise TimeoutError(f"Operation timed out after {timeout}s")

    def create_app(self, testing: bool = False) -> Flask:
        app = Flask(__name__)
        app.config["TESTING"] = testing
        app.dashboard = self  # type: ignore
        self._register_routes(app)
        return app

    def _register_routes(self, app: Flask) -> None:
        """Register all HTTP routes."""

        @app.route("/health")
        @require_api_key
        def health() -> Response:
            if not self._health_checker:
                return jsonify({
                    "status": "unknown",
                    "message": "Health checker not configured",
                })

            try:
                result = self._run_async(self._health_checker.check_all())
            except Exception as e:
                logger.error(f"Health check failed: {e}")
                return jsonify({"status": "error", "error": str(e)}), 500

            return jsonify({
                "status": result.status.value,
                "components": [
                    {
                        "component": c.component,
                        "status": c.status.value,
                        "message": c.message,
                        "latency_ms": c.latency_ms,
                    }
                    for c in result.components
                ],
                "checked_at": result.checked_at.isoformat(),
            })

        @app.route("/api/alerts")
        @require_api_key
        @require_viewer
        def alerts(viewer: Viewer) -> Response:
            if not self._alert_repo:
                return jsonify({"alerts": [], "error": "Database not configured"}), 503

            limit = min(request.args.get("limit", 100, type=int), MAX_ALERT_LIMIT)
            unread_only = request.args.get("unread", "false").lower() in ("1", "true", "yes")
            try:
                records = self._run_async(
                    self._alert_repo.list_visible(viewer, limit=limit, unread_only=unread_only)
                )
            except Exception as e:
                logger.error(f"Failed to list alerts: {e}")
                return jsonify({"alerts": [], "error": str(e)}), 500

            return jsonify({"alerts": [serialize_alert(a) for a in records]})

        @app.route("/api/alerts/<int:alert_id>/read", methods=["POST", "PUT"])
        @require_api_key
        @require_viewer
        def mark_alert_read(viewer: Viewer, alert_id: int) -> Response:
            if not self._alert_repo:
                return jsonify({"error": "Database not configured"}), 503

            try:
                updated = self._run_async(
                    self._alert_repo.mark_read(
                        alert_id, owner_id=VisibilityFilter.owner_scope(viewer)
                    )
                )
            except Exception as e:
                logger.error(f"Failed to mark alert {alert_id} read: {e}")
                return jsonify({"error": str(e)}), 500

            if not updated:
                return jsonify({"error": "Alert not found"}), 404

            logger.info(f"Alert {alert_id} acknowledged by user {viewer.user_id}")
            return jsonify({"success": True, "id": alert_id})

        @app.route("/api/dashboard/stats")
        @require_api_key
        @require_viewer
        def dashboard_stats(viewer: Viewer) -> Response:
            if not self._stats_collector:
                return jsonify({"error": "Stats not configured"}), 503

            try:
                stats = self._run_async(
                    self._stats_collector.get_dashboard_stats(viewer, self._clock().date())
                )
            except Exception as e:
                logger.error(f"Failed to compute dashboard stats: {e}")
                return jsonify({"error": str(e)}), 500

            return jsonify(stats.to_dict())

        @app.route("/api/scan", methods=["POST"])
        @require_api_key
        @require_viewer
        def trigger_scan(viewer: Viewer) -> Response:
            if not viewer.is_admin:
                return jsonify({"error": "Admin privileges required"}), 403
            if not self._scheduler:
                return jsonify({"error": "Scheduler not configured"}), 503

            logger.info(f"Manual scan requested by user {viewer.user_id}")
            try:
                summary = self._run_async(self._scheduler.run_now(), timeout=self._scan_timeout)
            except Exception as e:
                logger.error(f"Manual scan failed: {e}")
                return jsonify({"error": str(e)}), 500

            if summary is None:
                return jsonify({"status": "busy", "message": "A scan is already running"}), 409
            return jsonify({"status": "completed", "summary": summary.to_dict()})

        @app.route("/api/scan/status")
        @require_api_key
        def scan_status() -> Response:
            scheduler = self._scheduler
            if not scheduler:
                return jsonify({"error": "Scheduler not configured"}), 503

            last = scheduler.last_summary
            return jsonify({
                "state": scheduler.state.value,
                "running": scheduler.is_running,
                "scans_completed": scheduler.scans_completed,
                "scans_coalesced": scheduler.scans_coalesced,
                "next_run_in_seconds": scheduler.seconds_until_next_run(),
                "last_summary": last.to_dict() if last else None,
            })


def create_app(
    alert_repo: Optional["AlertRepository"] = None,
    stats_collector: Optional["StatsCollector"] = None,
    scheduler: Optional["ScanScheduler"] = None,
    health_checker: Optional["HealthChecker"] = None,
    clock: Callable[[], datetime] = datetime.now,
    testing: bool = False,
) -> Flask:
    """Factory function to create the dashboard app."""
    dashboard = Dashboard(
        alert_repo=alert_repo,
        stats_collector=stats_collector,
        scheduler=scheduler,
        health_checker=health_checker,
        clock=clock,
    )
    return dashboard.create_app(testing=testing)
