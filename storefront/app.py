import logging
import os
import time

from quart import Quart, jsonify, request

from .common.config import settings
from .common.database import dispose_db, init_db
from .orders.controller import bp as orders_bp
from .reporting.controller import bp as reporting_bp

# Prometheus metrics
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST


log = logging.getLogger(__name__)

INSTANCE_ID = os.getenv("INSTANCE_ID", "unknown")

REQUEST_COUNT = Counter("http_requests_total", "Total HTTP requests", ["method", "endpoint", "status"])
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0, float("inf"))
)


def _metrics_endpoint(path: str) -> str:
    # Group dynamic routes to keep label cardinality low
    if path.startswith("/orders/") and path.endswith("/status"):
        return "/orders/<id>/status"
    if path.startswith("/orders/"):
        return "/orders/<id>"
    return path


def create_app() -> Quart:
    app = Quart(__name__)

    # Blueprints
    app.register_blueprint(orders_bp)
    app.register_blueprint(reporting_bp)

    @app.before_request
    async def before_request():
        request._start_time = time.time()
        log.debug("[Instance %s] %s %s", INSTANCE_ID, request.method, request.path)

    @app.after_request
    async def after_request(response):
        try:
            if hasattr(request, "_start_time"):
                duration = time.time() - request._start_time
                endpoint = _metrics_endpoint(request.path)
                REQUEST_LATENCY.labels(endpoint=endpoint).observe(duration)
                REQUEST_COUNT.labels(
                    method=request.method,
                    endpoint=endpoint,
                    status=str(response.status_code)
                ).inc()
            response.headers["X-Instance-ID"] = INSTANCE_ID
        except Exception as e:
            log.error("Error recording metrics: %s", e)
        return response

    @app.get("/metrics")
    async def metrics():
        data = generate_latest()
        return app.response_class(data, mimetype=CONTENT_TYPE_LATEST)

    @app.get("/health")
    async def health():
        return jsonify({"status": "ok"})

    @app.before_serving
    async def startup():
        logging.basicConfig(level=logging.INFO)
        log.info("Initializing database...")
        await init_db(seed=settings.SEED_PRODUCTS)
        log.info("Database ready.")

    @app.after_serving
    async def shutdown():
        await dispose_db()
        log.info("Shutdown complete.")

    return app
