import logging

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from core.catch_error_middleware import ErrorHandlerMiddleware
from core.errors import AppError
from core.exception_handler import AppErrorHandler, ValidationErrorHandler
from core.lifespan import lifespan
from core.settings import settings
from routes.admin_routes import router as admin_router
from routes.listing_review_routes import router as listing_review_router
from routes.listing_routes import router as listing_router
from routes.owner_routes import router as owner_router
from routes.payment_proof_routes import router as proofs_router

logging.basicConfig(level=logging.INFO)

app = FastAPI(
    lifespan=lifespan,
    title=settings.PROJECT_NAME,
    version="1.0.0",
)

app.include_router(listing_router, prefix="/v1/listings")
app.include_router(listing_review_router, prefix="/v1/listings")
app.include_router(proofs_router, prefix="/v1/payments/proofs")
app.include_router(owner_router, prefix="/v1/owners")
app.include_router(admin_router, prefix="/v1/admin")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_HOSTS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["System"])
async def health_check():
    return {"status": "ok"}


app.add_exception_handler(RequestValidationError, ValidationErrorHandler())
app.add_exception_handler(AppError, AppErrorHandler())

app.add_middleware(ErrorHandlerMiddleware)


if __name__ == "__main__":
    uvicorn.run("app:app", host="127.0.0.1", port=8001, reload=True)
