import multiprocessing
import os

wsgi_app = "api.risk_api:app"
worker_class = "uvicorn.workers.UvicornWorker"

bind = os.getenv("WEB_BIND", "0.0.0.0:8000")
# scoring is CPU-light; one worker per core is plenty
workers = int(os.getenv("WEB_CONCURRENCY", multiprocessing.cpu_count()))
timeout = int(os.getenv("WEB_TIMEOUT", 30))
graceful_timeout = int(os.getenv("WEB_GRACEFUL_TIMEOUT", 30))
keepalive = 5

# each worker keeps its own assessment cache, so recycle them occasionally
max_requests = int(os.getenv("WEB_MAX_REQUESTS", 5000))
max_requests_jitter = max_requests // 10

loglevel = os.getenv("WEB_LOG_LEVEL", "info")
accesslog = "-"
errorlog = "-"


def on_starting(server):
    server.log.info(
        "Risk rules from %s, usage data from %s",
        os.getenv("RISK_RULES_PATH", "<data dir>/risk_rules.yaml"),
        os.getenv("RISK_USAGE_PATH", "<data dir>/usage.csv"),
    )
