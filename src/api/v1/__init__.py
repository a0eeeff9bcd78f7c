"""
API v1 Router Module - Conversion Service

All v1 endpoints are prefixed with /api/v1/

Primary endpoint: GET /api/v1/convert
- Background removal, trimming and WebP derivation
- Plain-text transcript response

Supporting endpoints:
- /api/v1/metrics - Prometheus scraping
"""

from fastapi import APIRouter

from src.api.v1.convert import router as convert_router
from src.api.v1.metrics import router as metrics_router

# Main v1 router
api_v1_router = APIRouter(prefix="/api/v1")

# Primary endpoint
api_v1_router.include_router(convert_router, prefix="/convert", tags=["conversion"])

# Supporting endpoints
api_v1_router.include_router(metrics_router, tags=["metrics"])
