from contextlib import asynccontextmanager
import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from journal_billing import __version__
from journal_billing.config import get_settings
from journal_billing.database import init_db
from journal_billing.errors import BillingError, ConfigurationError
from journal_billing.routers import (
    health_router,
    checkout_router,
    subscription_router,
    webhooks_router,
    customers_router,
)

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield


app = FastAPI(
    title="Journal Billing",
    version=__version__,
    lifespan=lifespan,
)

# Handles OPTIONS pre-flight for the browser client.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError):
    if isinstance(exc, ConfigurationError):
        logger.error("[CONFIG] %s", exc.message)
    elif exc.status_code >= 500:
        logger.error("[%s] %s %s", type(exc).__name__, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = [".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in exc.errors()]
    fields = [f for f in fields if f]
    message = "Invalid request body"
    if fields:
        message += ": " + ", ".join(fields)
    return JSONResponse(status_code=400, content={"success": False, "error": message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


app.include_router(health_router)
app.include_router(checkout_router)
app.include_router(subscription_router)
app.include_router(webhooks_router)
app.include_router(customers_router)


async def options_ok():
    # pre-flight with an Origin header never reaches here, CORSMiddleware answers it
    return Response(status_code=200)


for route in list(app.routes):
    if isinstance(route, APIRoute) and "POST" in route.methods:
        app.add_api_route(route.path, options_ok, methods=["OPTIONS"], include_in_schema=False)


@app.get("/")
async def root():
    return {
        "message": "Journal Billing API",
        "version": __version__,
        "environment": settings.environment
    }


if __name__ == "__main__":
    port = int(os.getenv("PORT", "5000"))
    uvicorn.run(
        "journal_billing.main:app",
        host="0.0.0.0",
        port=port,
        reload=settings.environment != "production"
    )
