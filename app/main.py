import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.core.responses import validation_error_response
from app.database import engine, init_models
from app.routes import transactions, wallet
from app.services.chain import create_chain_reader

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.DB_AUTO_CREATE:
        await init_models()
    # One read-only RPC client shared by every request.
    app.state.chain_reader = create_chain_reader(settings)
    logger.info(f"{settings.PROJECT_NAME} started")
    try:
        yield
    finally:
        await app.state.chain_reader.aclose()
        await engine.dispose()


app = FastAPI(title=settings.PROJECT_NAME, version=settings.PROJECT_VERSION, lifespan=lifespan)

app.include_router(wallet.router)
app.include_router(transactions.router)

# The dashboard frontend calls the API from the browser.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials="*" not in settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return validation_error_response(exc.errors())


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok"}
