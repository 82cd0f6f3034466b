"""
Gunicorn configuration for the Corps Journal local API.

Run with:  gunicorn -c gunicorn.conf.py corpsjournal.main:app
Env vars that override defaults:
  PORT     TCP port to bind (default 8000)
  HOST     interface to bind (default 127.0.0.1, the API is device-local)
"""
import os

bind = f"{os.environ.get('HOST', '127.0.0.1')}:{os.environ.get('PORT', '8000')}"

# One worker: the in-flight lock check flag and the repository locks are
# per process, and the store belongs to a single user on a single device.
workers = 1

# Uvicorn's ASGI event loop inside Gunicorn's process manager.
worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# Network time checks are bounded per source, so a request never needs this long.
timeout = 60

loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

graceful_timeout = 30

wsgi_app = "corpsjournal.main:app"
