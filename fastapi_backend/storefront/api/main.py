import logging
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.api import config, db
from storefront.api.logging_config import setup_logging
from storefront.api.responses import envelope
from storefront.api.routers import (
    addresses,
    auth,
    banners,
    carts,
    categories,
    components,
    coupons,
    media,
    orders,
    payment_methods,
    products,
    roles,
    settings,
    tags,
    users,
)

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "Health", "description": "Service health checks."},
    {"name": "Auth", "description": "Register, login/logout and the caller's profile."},
    {"name": "Products", "description": "Catalog browsing, search and best sellers."},
    {"name": "Components", "description": "CPU, RAM, storage, graphics card and display specs."},
    {"name": "Categories", "description": "Product categories."},
    {"name": "Tags", "description": "Product tags."},
    {"name": "Media", "description": "Uploaded image records."},
    {"name": "Banners", "description": "Storefront banners by page slot."},
    {"name": "Cart", "description": "Cart management for authenticated users."},
    {"name": "Coupons", "description": "Coupon lookup and discount preview."},
    {"name": "Orders", "description": "Checkout, order history and cancellation."},
    {"name": "Addresses", "description": "Delivery address book."},
    {"name": "Locations", "description": "Provinces, districts and wards."},
    {"name": "Payment methods", "description": "Payment options offered at checkout."},
    {"name": "Settings", "description": "Site-wide key/value settings."},
    {"name": "Admin", "description": "Back-office endpoints; admin role required."},
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    setup_logging(config.log_level(), config.log_format())
    db.init_db_pool()
    logger.info("Storefront API started")
    yield
    db.close_db_pool()
    logger.info("Storefront API shutting down")


app = FastAPI(
    title="Storefront API",
    description=(
        "Backend API for the computer hardware storefront and its admin back-office.\n\n"
        "Auth: send `Authorization: Bearer <token>` or the `token` cookie set by `/auth/login`."
    ),
    version="1.0.0",
    openapi_tags=openapi_tags,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_allow_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(products.router)
for component_router in components.routers:
    app.include_router(component_router)
app.include_router(categories.router)
app.include_router(tags.router)
app.include_router(media.router)
app.include_router(banners.router)
app.include_router(carts.router)
app.include_router(coupons.router)
app.include_router(orders.router)
app.include_router(addresses.router)
app.include_router(payment_methods.router)
app.include_router(users.router)
app.include_router(roles.router)
app.include_router(settings.router)


@app.get("/", tags=["Health"], summary="Health check")
def health_check() -> Dict[str, Any]:
    """Health check endpoint used by the frontend to verify backend availability."""
    return envelope({"healthy": True}, "Healthy")


# =========================
# Error handlers
# =========================

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code >= 500:
        logger.error("HTTP %s on %s: %s", exc.status_code, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=envelope(None, str(exc.detail), exc.status_code),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Invalid body, path or query input; field errors go in ``data``."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in e["loc"]),
            "message": e["msg"],
            "type": e["type"],
        }
        for e in exc.errors()
    ]
    logger.warning("Validation error on %s", request.url.path, extra={"path": request.url.path})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=envelope(errors, "Invalid request data", status.HTTP_400_BAD_REQUEST),
    )


@app.exception_handler(Exception)
async def generic_error_handler(request: Request, exc: Exception):
    """Catch-all; never leaks internal details."""
    logger.exception("Unhandled exception on %s", request.url.path, extra={"path": request.url.path})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=envelope(None, "Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR),
    )
