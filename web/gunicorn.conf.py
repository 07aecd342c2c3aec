import os

def cpu():
    return max(1, (os.cpu_count() or 1))

wsgi_app = "config.wsgi:application"

# Procesos (workers); each request is independent, no shared state
workers = int(os.getenv("GUNI_WORKERS", str(min(max(2, cpu() * 2), 8))))

# Threads por worker (gateway/store calls block on IO)
worker_class = "gthread"
threads = int(os.getenv("GTHREADS", "4"))

# Timeouts
timeout = int(os.getenv("GUNI_TIMEOUT", "60"))
graceful_timeout = int(os.getenv("GUNI_GRACEFUL_TIMEOUT", "30"))
keepalive = int(os.getenv("GUNI_KEEPALIVE", "5"))

# Robustez
preload_app = True
max_requests = int(os.getenv("GUNI_MAX_REQUESTS", "2000"))
max_requests_jitter = int(os.getenv("GUNI_MAX_REQUESTS_JITTER", "200"))

# App logs go through Django LOGGING (JSON); access log to stdout
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("GUNI_LOGLEVEL", "info")
