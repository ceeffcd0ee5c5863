"""
API endpoints package.

Contains FastAPI routers for the demo service:
- / - Emits sample records at every level
- /metrics - Prometheus metrics
- /healthz, /readyz - Health checks
"""
from .demo import router as demo_router
from .healthz import router as healthz_router
from .metrics import router as metrics_router

__all__ = ["demo_router", "healthz_router", "metrics_router"]
