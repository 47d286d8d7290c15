from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.maintenance_router import router as maintenance_router
from api.scp_router import router as scp_router
from api.tale_router import router as tale_router
from core.config import settings
from core.errors import (
    EntityAlreadyExistsError,
    EntityReferencedError,
    MissingReferencesError,
    NoFieldsProvidedError,
    NotFoundError,
    NotModifiedError,
    StoreError,
)
from core.logger import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="SCP Archive API",
    description="CRUD API for SCPs and the tales that reference them, keeping both sides of every reference in sync.",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"{request.method} request to {request.url.path}")
    return await call_next(request)


# --- Error translation ---

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(MissingReferencesError)
async def missing_references_handler(request: Request, exc: MissingReferencesError):
    return JSONResponse(status_code=400, content={"detail": str(exc), "missing": exc.missing})


@app.exception_handler(NoFieldsProvidedError)
@app.exception_handler(NotModifiedError)
async def bad_update_handler(request: Request, exc: Exception):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(EntityAlreadyExistsError)
async def conflict_handler(request: Request, exc: EntityAlreadyExistsError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(EntityReferencedError)
async def referenced_handler(request: Request, exc: EntityReferencedError):
    return JSONResponse(status_code=409, content={"detail": str(exc), "tale_ids": exc.tale_ids})


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error(f"Store failure during {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Database error."})


# --- Include all the Routers ---
app.include_router(scp_router)
app.include_router(tale_router)
app.include_router(maintenance_router)


@app.get("/")
def read_root():
    return {"message": "SCP Archive API is running."}
