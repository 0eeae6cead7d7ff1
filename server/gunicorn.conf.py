"""Gunicorn configuration for production deployment.

Reads settings from environment variables (same as config.py).

The job queue and scheduler live in process memory, so exactly one worker
runs; more workers would each run their own queue and scheduler.

Usage:
    gunicorn main:app -c gunicorn.conf.py
"""
import os

# Load from environment (same vars used by config.py)
host = os.getenv("HOST", "0.0.0.0")
port = os.getenv("PORT", "3010")
log_level = os.getenv("LOG_LEVEL", "INFO").lower()
debug = os.getenv("DEBUG", "false").lower() == "true"

# Bind - use HOST and PORT from .env
bind = f"{host}:{port}"

# Single worker: one queue consumer and one scheduler per deployment
workers = 1
worker_class = "uvicorn.workers.UvicornWorker"

# Timeouts - configurable via env
timeout = int(os.getenv("GUNICORN_TIMEOUT", "120"))
graceful_timeout = int(os.getenv("GUNICORN_GRACEFUL_TIMEOUT", "30"))
keepalive = int(os.getenv("GUNICORN_KEEPALIVE", "5"))

# No periodic worker recycling: a restart would drop queued jobs
max_requests = 0

# Logging - use LOG_LEVEL from .env
accesslog = "-" if not debug else None
errorlog = "-"
loglevel = log_level

# Process naming
proc_name = "autoflow-engine"

preload_app = False
