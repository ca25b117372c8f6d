"""
Health checks and monitoring with Prometheus metrics
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi.responses import Response
from sqlalchemy import func
from sqlmodel import Session, select
import time
import psutil
import structlog

from pdflearn.db import engine
from pdflearn.errors import ConfigurationError
from pdflearn.models import Document, User
from pdflearn.services.cache import cache
from pdflearn.services.llm import resolve_api_key

logger = structlog.get_logger()

# Prometheus metrics
REQUEST_COUNT = Counter('http_requests_total', 'Total HTTP requests', ['method', 'endpoint', 'status'])
REQUEST_DURATION = Histogram('http_request_duration_seconds', 'HTTP request duration', ['method', 'endpoint'])
TOTAL_USERS = Gauge('total_users', 'Total number of users in database')
TOTAL_DOCUMENTS = Gauge('total_documents', 'Total number of stored PDF documents')
PDF_UPLOADS = Counter('pdf_uploads_total', 'PDF upload pipeline runs', ['status'])
CONTENT_GENERATION_REQUESTS = Counter(
    'content_generation_requests_total', 'Content generation attempts', ['strategy', 'status']
)


class HealthChecker:
    def __init__(self):
        self.start_time = time.time()

    def check_database(self) -> dict:
        """Check database connectivity"""
        try:
            with Session(engine) as session:
                session.exec(select(func.count(User.id))).one()
            return {
                "status": "healthy",
                "message": "Database connection successful"
            }
        except Exception as e:
            logger.error("database_health_check_failed", error=str(e))
            return {
                "status": "unhealthy",
                "message": f"Database connection failed: {str(e)}"
            }

    def check_cache(self) -> dict:
        """Check cache round trip"""
        test_key = "health_check_test"
        cache.set(test_key, "test_value", expire=10)
        value = cache.get(test_key)
        cache.delete(test_key)

        if value == "test_value":
            return {
                "status": "healthy",
                "message": "Cache operations successful",
                "backend": "redis" if cache.redis_client else "memory"
            }
        return {
            "status": "unhealthy",
            "message": "Cache operations failed"
        }

    def check_completion(self) -> dict:
        """Report whether the completion API can be used.

        A missing key is not unhealthy: uploads fall back to local generation.
        """
        try:
            with Session(engine) as session:
                resolve_api_key(session)
            return {"status": "healthy", "message": "Completion API key configured", "mode": "completion"}
        except ConfigurationError:
            return {"status": "healthy", "message": "Completion API key missing, using local generator", "mode": "local"}
        except Exception as e:
            logger.error("completion_health_check_failed", error=str(e))
            return {"status": "unhealthy", "message": f"Completion check failed: {str(e)}"}

    def get_system_metrics(self) -> dict:
        """Get system resource metrics"""
        try:
            memory = psutil.virtual_memory()
            disk = psutil.disk_usage('/')

            return {
                "cpu_percent": psutil.cpu_percent(interval=None),
                "memory_percent": memory.percent,
                "memory_available_gb": round(memory.available / (1024**3), 2),
                "disk_percent": disk.percent,
                "disk_free_gb": round(disk.free / (1024**3), 2),
                "uptime_seconds": time.time() - self.start_time
            }
        except Exception as e:
            logger.error("system_metrics_failed", error=str(e))
            return {"error": str(e)}

    def get_application_metrics(self) -> dict:
        """Get application-specific metrics"""
        try:
            with Session(engine) as session:
                total_users = session.exec(select(func.count(User.id))).one()
                total_documents = session.exec(select(func.count(Document.id))).one()

            TOTAL_USERS.set(total_users)
            TOTAL_DOCUMENTS.set(total_documents)

            return {
                "total_users": total_users,
                "total_documents": total_documents,
                "cache_available": cache.redis_client is not None
            }
        except Exception as e:
            logger.error("application_metrics_failed", error=str(e))
            return {"error": str(e)}

    def get_health_status(self) -> dict:
        """Get overall health status"""
        checks = {
            "database": self.check_database(),
            "cache": self.check_cache(),
            "completion": self.check_completion()
        }

        unhealthy_checks = [name for name, check in checks.items() if check["status"] == "unhealthy"]

        return {
            "status": "healthy" if not unhealthy_checks else "unhealthy",
            "timestamp": time.time(),
            "checks": checks,
            "system_metrics": self.get_system_metrics(),
            "application_metrics": self.get_application_metrics(),
            "unhealthy_components": unhealthy_checks
        }


health_checker = HealthChecker()


def get_metrics():
    """Get Prometheus metrics"""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
