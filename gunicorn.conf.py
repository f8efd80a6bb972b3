# Gunicorn configuration for the CourierHub API
# Usage: gunicorn -c gunicorn.conf.py run:app

import os
import multiprocessing

# Server socket
bind = os.getenv('GUNICORN_BIND', '0.0.0.0:5000')
backlog = 2048

# Worker processes
workers = int(os.getenv('GUNICORN_WORKERS', multiprocessing.cpu_count() * 2 + 1))
worker_class = 'sync'
# Courier API calls can take up to COURIER_TIMEOUT_SECONDS each
timeout = int(os.getenv('GUNICORN_TIMEOUT', 120))
keepalive = 5
graceful_timeout = 30

proc_name = 'courierhub-api'

daemon = False
pidfile = None

# Logging
errorlog = '-'
accesslog = '-'
loglevel = os.getenv('GUNICORN_LOG_LEVEL', 'info')
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

preload_app = True
