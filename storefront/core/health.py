"""
Health checks following the draft "Health Check Response Format for HTTP APIs"
and Kubernetes probe conventions.
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import inspect
from typing import Dict, Any, Optional
import os
import time
from datetime import datetime
from enum import Enum
import psutil
import logging

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.utcnow().isoformat() + "Z"


class HealthStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"


class ServiceHealth:
    """
    Liveness, readiness, startup and metrics endpoints.

    ``database`` is the application's own ``Database`` (None for the in-memory
    backend); ``notifications`` is the outbound email client whose
    configuration is reported but never gates readiness.
    """

    def __init__(self, service_name: str, version: str = "1.0.0", database=None, notifications=None,
                 jwt_secret: Optional[str] = None):
        self.service_name = service_name
        self.version = version
        self.database = database
        self.notifications = notifications
        self.jwt_secret = jwt_secret
        self.start_time = time.time()
        self.checks_performed = 0
        self.last_check_time = None

    def create_health_router(self) -> APIRouter:
        router = APIRouter(tags=["health"])

        @router.get("/health", status_code=status.HTTP_200_OK)
        async def health_check() -> Dict[str, Any]:
            return {
                "status": HealthStatus.PASS,
                "service": self.service_name,
                "version": self.version,
                "releaseId": os.getenv("RELEASE_ID", "unknown"),
                "timestamp": _now()
            }

        @router.get("/health/live", status_code=status.HTTP_200_OK)
        async def liveness() -> Dict[str, Any]:
            return {"status": "alive"}

        @router.get("/health/ready")
        async def readiness() -> JSONResponse:
            """Checks every dependency; 503 only when one of them fails."""
            checks = self.perform_readiness_checks()
            overall_status = self.calculate_overall_status(checks)
            status_code = (
                status.HTTP_503_SERVICE_UNAVAILABLE
                if overall_status == HealthStatus.FAIL
                else status.HTTP_200_OK
            )

            response = {
                "status": overall_status,
                "version": self.version,
                "releaseId": os.getenv("RELEASE_ID", "unknown"),
                "notes": [],
                "output": "",
                "checks": checks,
                "links": {},
                "serviceId": self.service_name,
                "description": f"{self.service_name} storefront API",
                "timestamp": _now()
            }
            return JSONResponse(status_code=status_code, content=response)

        @router.get("/health/startup")
        async def startup() -> Dict[str, Any]:
            checks = self.perform_startup_checks()
            status_val = self.calculate_overall_status(checks)

            if status_val == HealthStatus.FAIL:
                return JSONResponse(
                    status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                    content={"status": "starting", "checks": checks}
                )

            return {"status": "started", "checks": checks}

        @router.get("/metrics")
        async def metrics() -> Dict[str, Any]:
            process = psutil.Process()
            memory = process.memory_info()

            return {
                "service": self.service_name,
                "version": self.version,
                "uptime_seconds": time.time() - self.start_time,
                "checks_performed": self.checks_performed,
                "timestamp": _now(),
                "system": {
                    "memory_rss_bytes": memory.rss,
                    "memory_vms_bytes": memory.vms,
                    "cpu_percent": process.cpu_percent(),
                    "num_threads": process.num_threads()
                }
            }

        return router

    def perform_readiness_checks(self) -> Dict[str, Dict[str, Any]]:
        self.checks_performed += 1
        self.last_check_time = time.time()

        checks = {}
        checks["database:connectivity"] = self._check_database()
        checks["notifications:configuration"] = self._check_notifications()
        checks["storage:disk_space"] = self._check_disk_space()
        checks["system:memory"] = self._check_memory()
        return checks

    def perform_startup_checks(self) -> Dict[str, Dict[str, Any]]:
        checks = {}
        checks["database:migrations"] = self._check_migrations()
        checks["config:secrets"] = self._check_secrets()
        return checks

    def _check_database(self) -> Dict[str, Any]:
        if self.database is None:
            return {
                "status": HealthStatus.PASS,
                "componentType": "datastore",
                "output": "in-memory store",
                "time": _now()
            }
        try:
            start_time = time.time()
            self.database.ping()
            response_time = (time.time() - start_time) * 1000

            return {
                "status": HealthStatus.PASS,
                "componentType": "datastore",
                "observedValue": f"{response_time:.2f}ms",
                "observedUnit": "ms",
                "time": _now()
            }
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {
                "status": HealthStatus.FAIL,
                "componentType": "datastore",
                "output": str(e),
                "time": _now()
            }

    def _check_notifications(self) -> Dict[str, Any]:
        # Email is best-effort, so a missing configuration only warns
        configured = self.notifications is not None and self.notifications.configured
        result = {
            "status": HealthStatus.PASS if configured else HealthStatus.WARN,
            "componentType": "component",
            "time": _now()
        }
        if not configured:
            result["output"] = "Notification API URL or key not set; emails will be skipped"
        return result

    def _check_disk_space(self) -> Dict[str, Any]:
        try:
            disk = psutil.disk_usage('/')
            free_gb = disk.free / (1024 ** 3)

            if free_gb < 1:
                status_val = HealthStatus.FAIL
            elif free_gb < 5:
                status_val = HealthStatus.WARN
            else:
                status_val = HealthStatus.PASS

            return {
                "status": status_val,
                "componentType": "system",
                "observedValue": f"{free_gb:.2f}",
                "observedUnit": "GB",
                "time": _now()
            }
        except Exception as e:
            return {
                "status": HealthStatus.WARN,
                "componentType": "system",
                "output": str(e),
                "time": _now()
            }

    def _check_memory(self) -> Dict[str, Any]:
        try:
            memory = psutil.virtual_memory()
            available_mb = memory.available / (1024 ** 2)

            if available_mb < 100:
                status_val = HealthStatus.FAIL
            elif available_mb < 500:
                status_val = HealthStatus.WARN
            else:
                status_val = HealthStatus.PASS

            return {
                "status": status_val,
                "componentType": "system",
                "observedValue": f"{available_mb:.2f}",
                "observedUnit": "MB",
                "time": _now()
            }
        except Exception as e:
            return {
                "status": HealthStatus.WARN,
                "componentType": "system",
                "output": str(e),
                "time": _now()
            }

    def _check_migrations(self) -> Dict[str, Any]:
        if self.database is None:
            return {"status": HealthStatus.PASS, "componentType": "datastore", "time": _now()}
        try:
            if inspect(self.database.engine).has_table("alembic_version"):
                return {"status": HealthStatus.PASS, "componentType": "datastore", "time": _now()}
            return {
                "status": HealthStatus.WARN,
                "componentType": "datastore",
                "output": "Migrations table not found",
                "time": _now()
            }
        except Exception as e:
            return {
                "status": HealthStatus.FAIL,
                "componentType": "datastore",
                "output": str(e),
                "time": _now()
            }

    def _check_secrets(self) -> Dict[str, Any]:
        if not self.jwt_secret or self.jwt_secret == "change-me":
            return {
                "status": HealthStatus.WARN,
                "componentType": "configuration",
                "output": "JWT_SECRET is unset or still the default",
                "time": _now()
            }
        return {"status": HealthStatus.PASS, "componentType": "configuration", "time": _now()}

    def calculate_overall_status(self, checks: Dict[str, Dict[str, Any]]) -> HealthStatus:
        if not checks:
            return HealthStatus.PASS

        statuses = [check.get("status", HealthStatus.PASS) for check in checks.values()]

        if HealthStatus.FAIL in statuses:
            return HealthStatus.FAIL
        elif HealthStatus.WARN in statuses:
            return HealthStatus.WARN
        else:
            return HealthStatus.PASS
