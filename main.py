from fastapi import FastAPI, HTTPException, Depends, Request, Query
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional, List
import logging

from config import settings
import schemas
from errors import (
    RecordValidationError,
    ConflictError,
    StorageUnavailableError,
    InvalidQueryError,
    CompletionNotConfiguredError,
    CompletionError,
)
from gemini_client import complete_chat
from seed import seed_initial_data
from storage import Storage, create_storage

logger = logging.getLogger(__name__)

SERVICE_NAME = "edubot-backend"

# Error bodies share one shape, documented for every route
ERROR_RESPONSES = {
    400: {"model": schemas.ErrorResponse, "description": "Invalid request data"},
    500: {"model": schemas.ErrorResponse, "description": "Internal error"},
    503: {"model": schemas.ErrorResponse, "description": "Storage unavailable"},
}

# Create FastAPI app
app = FastAPI(title="EduBot Backend", responses=ERROR_RESPONSES)


# Build the storage and load seed data before serving requests
@app.on_event("startup")
async def startup_event():
    settings.validate()
    storage = create_storage(settings)
    if settings.SEED_ON_STARTUP:
        await seed_initial_data(storage)
    app.state.storage = storage


def get_storage(request: Request) -> Storage:
    """Dependency to get the storage built at startup."""
    return request.app.state.storage


def _error(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


# Global Custom Error Handlers
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Convert 422 to 400 for frontend compatibility."""
    return _error(400, "VALIDATION_ERROR", f"Invalid data format: {str(exc)}")


@app.exception_handler(RecordValidationError)
async def record_validation_handler(request: Request, exc: RecordValidationError):
    return _error(400, "VALIDATION_ERROR", str(exc))


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return _error(409, "CONFLICT", str(exc))


@app.exception_handler(StorageUnavailableError)
async def storage_unavailable_handler(request: Request, exc: StorageUnavailableError):
    return _error(503, "STORAGE_UNAVAILABLE", "Temporary database connection issue. Please try again.")


@app.exception_handler(InvalidQueryError)
async def invalid_query_handler(request: Request, exc: InvalidQueryError):
    logger.error(f"[ERROR] Invalid query: {str(exc)}")
    return _error(500, "INTERNAL_SERVER_ERROR", "An unexpected error occurred. Please try again.")


@app.exception_handler(CompletionNotConfiguredError)
async def completion_not_configured_handler(request: Request, exc: CompletionNotConfiguredError):
    return _error(500, "LLM_NOT_CONFIGURED", str(exc))


@app.exception_handler(CompletionError)
async def completion_error_handler(request: Request, exc: CompletionError):
    return _error(502, "LLM_ERROR", "Failed to get AI response")


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions."""
    logger.exception(f"Global Error: {str(exc)}")
    return _error(500, "INTERNAL_SERVER_ERROR", "An unexpected error occurred. Please try again.")


# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================
# ENDPOINTS
# ============================================

@app.get("/api/health", response_model=schemas.HealthResponse)
async def health(storage: Storage = Depends(get_storage)):
    """Health check endpoint."""
    return schemas.HealthResponse(service=SERVICE_NAME, storage=storage.kind)


# Users
@app.post(
    "/api/users",
    response_model=schemas.UserPublic,
    status_code=201,
    responses={409: {"model": schemas.ErrorResponse, "description": "Username, email or external id taken"}},
)
async def create_user(user_data: schemas.UserCreate, storage: Storage = Depends(get_storage)):
    """
    Register a user after sign-up with the identity provider.
    Returns 409 if the username, email or external id is taken.
    """
    logger.info(f"[ENDPOINT] POST /api/users for {user_data.email}")
    user = await storage.create_user(user_data)
    return schemas.UserPublic.model_validate(user)


@app.get("/api/users/external/{external_id}", response_model=schemas.UserPublic)
async def get_user_by_external_id(external_id: str, storage: Storage = Depends(get_storage)):
    """Look up the profile linked to an identity-provider subject id (first-login check)."""
    user = await storage.get_user_by_external_id(external_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return schemas.UserPublic.model_validate(user)


@app.get("/api/users/{user_id}", response_model=schemas.UserPublic)
async def get_user(user_id: int, storage: Storage = Depends(get_storage)):
    user = await storage.get_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return schemas.UserPublic.model_validate(user)


# Chat messages
@app.get("/api/chat/messages", response_model=List[schemas.ChatMessage])
async def get_chat_messages(
    user_id: Optional[int] = None,
    limit: Optional[int] = Query(default=None, ge=1),
    storage: Storage = Depends(get_storage)
):
    """
    Chat history for a user, oldest first, including global messages.
    Without a user_id there is no history to show.
    """
    if user_id is None:
        return []
    return await storage.get_chat_messages(user_id, limit=limit)


@app.post("/api/chat/messages", response_model=schemas.ChatMessage, status_code=201)
async def create_chat_message(message: schemas.ChatMessageCreate, storage: Storage = Depends(get_storage)):
    return await storage.create_chat_message(message)


@app.post(
    "/api/chat/completion",
    response_model=schemas.CompletionResponse,
    responses={502: {"model": schemas.ErrorResponse, "description": "LLM request failed"}},
)
def chat_completion(request: schemas.CompletionRequest):
    """Forward a conversation to the LLM. The EduBot system prompt is added if missing."""
    logger.info(f"[ENDPOINT] /api/chat/completion with {len(request.messages)} messages")
    return complete_chat([m.model_dump() for m in request.messages])


# College cutoffs
@app.get("/api/college-cutoffs", response_model=List[schemas.CollegeCutoff])
async def get_college_cutoffs(
    filters: schemas.CollegeCutoffFilters = Depends(),
    storage: Storage = Depends(get_storage)
):
    """Cutoffs matching every supplied filter exactly."""
    criteria = filters.criteria()
    cutoffs = await storage.get_college_cutoffs(criteria)
    logger.info(f"[ENDPOINT] /api/college-cutoffs filters={criteria} found={len(cutoffs)}")
    return cutoffs


@app.post("/api/college-cutoffs", response_model=schemas.CollegeCutoff, status_code=201)
async def create_college_cutoff(cutoff: schemas.CollegeCutoffCreate, storage: Storage = Depends(get_storage)):
    return await storage.create_college_cutoff(cutoff)


@app.get("/api/college-cutoffs/programs", response_model=List[str])
async def get_cutoff_programs(storage: Storage = Depends(get_storage)):
    return await storage.get_distinct_programs()


@app.get("/api/college-cutoffs/universities", response_model=List[str])
async def get_cutoff_universities(storage: Storage = Depends(get_storage)):
    return await storage.get_distinct_universities()


@app.get("/api/college-cutoffs/countries", response_model=List[str])
async def get_cutoff_countries(storage: Storage = Depends(get_storage)):
    return await storage.get_distinct_countries()


# Scholarships
@app.get("/api/scholarships", response_model=List[schemas.Scholarship])
async def get_scholarships(
    filters: schemas.ScholarshipFilters = Depends(),
    storage: Storage = Depends(get_storage)
):
    return await storage.get_scholarships(filters.criteria())


@app.post("/api/scholarships", response_model=schemas.Scholarship, status_code=201)
async def create_scholarship(scholarship: schemas.ScholarshipCreate, storage: Storage = Depends(get_storage)):
    return await storage.create_scholarship(scholarship)


@app.get("/api/scholarships/fields", response_model=List[str])
async def get_scholarship_fields(storage: Storage = Depends(get_storage)):
    return await storage.get_distinct_fields_of_study()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
