"""Gunicorn configuration for the device scaler API."""
import os
import sys

bind = os.getenv("DDS_BIND", "0.0.0.0:8080")
workers = int(os.getenv("DDS_WORKERS", "2"))
timeout = 120
worker_class = "sync"
preload_app = False  # Each worker builds its own Kubernetes clients

def post_worker_init(worker):
    """Called just after a worker has initialized the application."""
    app = getattr(worker, "wsgi", None)
    scaler = app.config.get('dds_scaler') if app and hasattr(app, 'config') else None
    if scaler is None:
        print(f"[Worker {worker.pid}] WARNING: No device scaler found in app.config", file=sys.stderr, flush=True)
    else:
        print(f"[Worker {worker.pid}] Device scaler ready", file=sys.stderr, flush=True)
