import multiprocessing
import os

# Gunicorn Production Configuration
# Evaluation is CPU-bound and stateless: one sync worker per core, no threads.
bind = os.environ.get('BIND', '0.0.0.0:8000')
workers = int(os.environ.get('WEB_CONCURRENCY', multiprocessing.cpu_count() + 1))
worker_class = 'sync'

# Resilience
timeout = 30
max_requests = 1000
max_requests_jitter = 100
keepalive = 5

# Logging
accesslog = '-'       # Stdout
errorlog = '-'        # Stderr
loglevel = os.environ.get('LOG_LEVEL', 'info').lower()
capture_output = True
