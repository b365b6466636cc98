import logging
from time import monotonic

from fastapi import FastAPI, Request
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from fieldflow.api.audit import router as audit_router
from fieldflow.api.customers import router as customers_router
from fieldflow.api.deployment import router as deployment_router
from fieldflow.api.inventory import router as inventory_router
from fieldflow.api.topology import router as topology_router
from fieldflow.errors import register_error_handlers
from fieldflow.logging import configure_logging
from fieldflow.metrics import REQUEST_COUNT, REQUEST_LATENCY

app = FastAPI(title="fieldflow API")
logger = logging.getLogger(__name__)

configure_logging()


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    started = monotonic()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        route = request.scope.get("route")
        path = getattr(route, "path", None) or "unmatched"
        labels = {"method": request.method, "path": path, "status": str(status_code)}
        REQUEST_COUNT.labels(**labels).inc()
        REQUEST_LATENCY.labels(**labels).observe(monotonic() - started)


register_error_handlers(app)

for router in (
    inventory_router,
    customers_router,
    deployment_router,
    topology_router,
    audit_router,
):
    app.include_router(router, prefix="/api")


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
