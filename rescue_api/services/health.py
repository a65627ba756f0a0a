"""
Health Check Service

Reports the health of the API and its MongoDB dependency.
"""

import time
from datetime import datetime, timezone
from typing import Dict, Any
from opentelemetry import trace

from .mongodb import MongoDBService
from ..models.responses import HealthCheckResponse

tracer = trace.get_tracer(__name__)

SERVICE_NAME = "rescue-coordination-api"


class HealthCheckService:
    """Service for dependency health monitoring."""

    def __init__(self, mongodb_service: MongoDBService, environment: str = 'development',
                 service_version: str = "1.0.0"):
        self.mongodb_service = mongodb_service
        self.environment = environment
        self.service_version = service_version

    def get_health(self) -> Dict[str, Any]:
        """Get overall health including MongoDB status."""
        with tracer.start_as_current_span("health.check") as span:
            start_time = time.time()

            mongodb_health = self._check_mongodb_health()
            overall_status = self._determine_overall_status([mongodb_health["status"]])

            response_time_ms = round((time.time() - start_time) * 1000, 2)
            health = HealthCheckResponse(
                status=overall_status,
                version=self.service_version,
                environment=self.environment,
                timestamp=datetime.now(timezone.utc).isoformat(),
                dependencies={"mongodb": mongodb_health}
            )

            span.set_attributes({
                "health.overall_status": overall_status,
                "health.response_time_ms": response_time_ms,
                "health.mongodb_status": mongodb_health["status"]
            })

            return {"service": SERVICE_NAME, "response_time_ms": response_time_ms, **health.model_dump()}

    def _check_mongodb_health(self) -> Dict[str, Any]:
        """Check MongoDB connectivity and response time."""
        with tracer.start_as_current_span("health.mongodb_check") as span:
            start_time = time.time()
            health_info = self.mongodb_service.health_check()
            health_info["response_time_ms"] = round((time.time() - start_time) * 1000, 2)

            span.set_attribute("mongodb.status", health_info["status"])
            return health_info

    @staticmethod
    def _determine_overall_status(dependency_statuses: list) -> str:
        """Determine overall system status based on dependency health."""
        if all(status == "healthy" for status in dependency_statuses):
            return "healthy"
        elif any(status == "healthy" for status in dependency_statuses):
            return "degraded"
        else:
            return "unhealthy"
