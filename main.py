"""
HTTP surface of the identity reconciliation service
The same `app` is served by uvicorn locally and wrapped by Mangum on Lambda.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from database import DatabaseManager, get_db_manager
from schemas.identify import ContactRecord, ErrorResponse, IdentifyRequest, IdentifyResponse
from services.errors import ErrorKind, ReconciliationError
from services.identity_service import IdentityService

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.STORE: 503,
    ErrorKind.INVARIANT: 500,
}

ERROR_MESSAGES = {
    ErrorKind.STORE: "Database is currently unavailable. Please try again later.",
    ErrorKind.INVARIANT: "Unable to process identity reconciliation request",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    db_manager = get_db_manager()
    if settings.AUTO_CREATE_TABLES:
        await db_manager.create_tables()
    yield
    await db_manager.dispose()


app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
    debug=settings.debug_enabled(),
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


def get_identity_service(db_manager: DatabaseManager = Depends(get_db_manager)) -> IdentityService:
    return IdentityService(db_manager)


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies (wrong JSON types, invalid JSON)"""
    logger.warning(f"Validation error for {request.url}: {exc}")

    error_details = []
    for error in exc.errors():
        error_details.append({
            "field": " -> ".join(str(x) for x in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        })

    error_response = ErrorResponse(
        error="ValidationError",
        message="Request validation failed",
        details={"errors": error_details}
    )
    return JSONResponse(status_code=400, content=error_response.model_dump())


@app.exception_handler(ReconciliationError)
async def reconciliation_exception_handler(request: Request, exc: ReconciliationError):
    """Map domain errors to status codes by their kind"""
    if exc.kind is ErrorKind.VALIDATION:
        logger.warning(f"Rejected request for {request.url}: {exc.message}")
        error_response = ErrorResponse(error="ValidationError", message=exc.message, details=exc.details)
    else:
        logger.error(f"{type(exc).__name__} for {request.url}: {exc.message}", exc_info=exc)
        error_response = ErrorResponse(error=type(exc).__name__, message=ERROR_MESSAGES[exc.kind])

    return JSONResponse(status_code=ERROR_STATUS[exc.kind], content=error_response.model_dump())


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Anything that escaped the domain error mapping"""
    logger.error(f"Unexpected error for {request.url}: {exc}", exc_info=exc)

    error_response = ErrorResponse(
        error="InternalServerError",
        message="An unexpected error occurred"
    )
    return JSONResponse(status_code=500, content=error_response.model_dump())


@app.get("/")
async def root():
    """Liveness plus build information"""
    return {
        "status": "ok",
        "service": "identity-reconciliation",
        "version": settings.API_VERSION,
        "environment": settings.ENVIRONMENT
    }


@app.get("/health")
async def health_check(db_manager: DatabaseManager = Depends(get_db_manager)):
    """Reports "degraded" instead of failing when the database is unreachable"""
    connected = await db_manager.test_connection()

    return {
        "status": "healthy" if connected else "degraded",
        "environment": settings.ENVIRONMENT,
        "version": settings.API_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "lambda": settings.is_lambda_environment(),
        "database": {
            "status": "connected" if connected else "disconnected",
        }
    }


@app.get("/contacts", response_model=List[ContactRecord])
async def list_contacts(service: IdentityService = Depends(get_identity_service)):
    """
    List every stored contact row, ordered by id
    """
    contacts = await service.list_contacts()
    return [ContactRecord.model_validate(contact) for contact in contacts]


@app.post("/identify", response_model=IdentifyResponse)
async def identify_endpoint(
    request: IdentifyRequest,
    service: IdentityService = Depends(get_identity_service)
):
    """
    Reconcile one email/phone pair against the stored contacts

    The pair either starts a new cluster, joins an existing one (adding a
    secondary row when it brings a value the cluster lacks) or merges every
    cluster it touches under the oldest primary. The response is the
    resulting cluster, primary values first.
    """
    logger.info(f"Identify request: email={request.email}, phone={request.phoneNumber}")

    response = await service.identify_contact(request)

    logger.info(f"Identify resolved to primary {response.contact.primaryContactId}")
    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.debug_enabled(),
        workers=1
    )
