import os

# Server Socket
bind = os.environ.get("GUNICORN_BIND", "127.0.0.1:8000")  # NGINX proxies requests

# Worker Settings
workers = int(os.environ.get("GUNICORN_WORKERS", 5))
threads = 2  # Each worker handles 2 threads for concurrency
worker_class = "gthread"

# Each worker runs its own post-commit thread; keep it alive across requests
preload_app = False

# Security & Performance
timeout = 120
graceful_timeout = 90  # Lets queued invoice tasks drain before restart
keepalive = 5
max_requests = 1000
max_requests_jitter = 50

# Logging
log_dir = os.environ.get("GUNICORN_LOG_DIR", "log/gunicorn")
accesslog = os.path.join(log_dir, "access.log")
errorlog = os.path.join(log_dir, "error.log")
loglevel = "info"

# Process Name
proc_name = "backoffice_gunicorn"
