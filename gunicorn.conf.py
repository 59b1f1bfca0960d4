"""
BillingDesk - Gunicorn WSGI Server Configuration
================================================

Production configuration for serving billingdesk.wsgi behind a reverse proxy.

Settings are read from the environment so the same file works locally and
in containers:
    PORT, WEB_CONCURRENCY, GUNICORN_THREADS, GUNICORN_MAX_REQUESTS,
    GUNICORN_GRACEFUL_TIMEOUT, GUNICORN_RELOAD, FORWARDED_ALLOW_IPS
"""

import logging
import multiprocessing
import os

# =============================================================================
# ENVIRONMENT DETECTION
# =============================================================================

IS_PRODUCTION = os.getenv("PRODUCTION") == "true"

logging.basicConfig(
    level=logging.INFO if IS_PRODUCTION else logging.DEBUG,
    format="[%(asctime)s] %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# SERVER BINDING
# =============================================================================

PORT = int(os.getenv("PORT", 8000))
bind = [f"0.0.0.0:{PORT}"]
wsgi_app = "billingdesk.wsgi:application"


# =============================================================================
# WORKER CONFIGURATION
# =============================================================================

def calculate_workers():
    """Two workers per core plus one, capped so small containers don't run out of memory."""
    return min((multiprocessing.cpu_count() * 2) + 1, 9)


workers = int(os.getenv("WEB_CONCURRENCY", calculate_workers()))
worker_class = "gthread"
threads = int(os.getenv("GUNICORN_THREADS", 4))

# Recycle workers periodically; GUNICORN_MAX_REQUESTS=0 disables it
max_requests = int(os.getenv("GUNICORN_MAX_REQUESTS", 1000))
max_requests_jitter = int(os.getenv("GUNICORN_MAX_REQUESTS_JITTER", 100))


# =============================================================================
# TIMEOUT & RESOURCE LIMITS
# =============================================================================

# PDF rendering is the slowest request path
timeout = 120
graceful_timeout = int(os.getenv("GUNICORN_GRACEFUL_TIMEOUT", 10))
keepalive = 5

limit_request_line = 8190
limit_request_fields = 100
limit_request_field_size = 8190


# =============================================================================
# APPLICATION LOADING
# =============================================================================

preload_app = True
reload = os.getenv("GUNICORN_RELOAD", "false").lower() == "true"


# =============================================================================
# PROXY & FORWARDING
# =============================================================================

forwarded_allow_ips = os.getenv("FORWARDED_ALLOW_IPS", "*")

if IS_PRODUCTION:
    secure_scheme_headers = {
        "X-FORWARDED-PROTO": "https",
    }


# =============================================================================
# LOGGING
# =============================================================================

accesslog = "-"
errorlog = "-"
loglevel = "info" if IS_PRODUCTION else "debug"
capture_output = True

access_log_format = (
    '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s '
    '"%(f)s" "%(a)s" response_time=%(D)s_us request_id=%({x-request-id}o)s'
)

proc_name = "billingdesk"


# =============================================================================
# HOOKS
# =============================================================================

def when_ready(server):
    logger.info(f"Gunicorn ready at {server.address} with {workers} workers x {threads} threads")
    logger.info("GET /health for liveness, GET /health/ready for database readiness")


def post_fork(server, worker):
    """Open the database connection up front so the first request isn't slow."""
    from django.db import connection
    from django.db.utils import OperationalError

    try:
        connection.ensure_connection()
    except OperationalError as e:
        logger.warning(f"Worker {worker.pid}: database not reachable yet: {e}")
    else:
        logger.info(f"Worker {worker.pid}: database connection ready")


def on_exit(server):
    logger.info("Gunicorn shutting down")
