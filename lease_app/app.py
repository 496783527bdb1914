import logging

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from core.catch_error_middleware import ErrorHandlerMiddleware
from core.exception_handler import ValidationErrorHandler
from core.lifespan import lifespan
from core.settings import settings
from routes.cron_routes import router as cron_router
from routes.lease_routes import router as lease_router
from routes.notification_routes import router as notification_router

logging.basicConfig(level=logging.INFO)

app = FastAPI(
    lifespan=lifespan,
    title=settings.PROJECT_NAME,
    version="1.0.0",
)

app.include_router(cron_router, prefix="/v1/cron")
app.include_router(lease_router, prefix="/v1/leases")
app.include_router(notification_router, prefix="/v1/notifications")


@app.get("/health", tags=["System"])
async def health_check():
    return {"status": "ok"}


app.add_exception_handler(
    RequestValidationError,
    ValidationErrorHandler(),
)

app.add_middleware(ErrorHandlerMiddleware)


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8001)
