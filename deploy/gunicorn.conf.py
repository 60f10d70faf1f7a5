"""
Gunicorn configuration for the science fair results API.

Run with: gunicorn -c deploy/gunicorn.conf.py sciencefair.main:app
"""
import os
import multiprocessing

# Server socket
bind = os.environ.get("BIND", "0.0.0.0:8000")
backlog = 2048

# Worker processes
# SQLite allows a single writer; use a server database before raising WEB_CONCURRENCY
workers = int(os.environ.get("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
timeout = 120
keepalive = 5

# Logging
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

# Process naming
proc_name = "sciencefair"

# Server mechanics
daemon = False
pidfile = "/tmp/sciencefair-gunicorn.pid"

# Security
limit_request_line = 4094
limit_request_fields = 100
limit_request_field_size = 8190
