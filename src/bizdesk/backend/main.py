import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.bizdesk.backend.database import init_db
from src.bizdesk.backend.routers import articles as articles_router
from src.bizdesk.backend.routers import auth as auth_router
from src.bizdesk.backend.routers import collaborators as collaborators_router
from src.bizdesk.backend.routers import notifications as notifications_router
from src.bizdesk.backend.routers import transactions as transactions_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


logger = logging.getLogger(__name__)

app = FastAPI(title="bizdesk dev backend", lifespan=lifespan)


@app.exception_handler(StarletteHTTPException)
async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Laravel-style body: {"message": ...}."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def _validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Laravel-style 422: {"message": first error, "errors": {field: [messages]}}."""
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        field = ".".join(loc) or "body"
        errors.setdefault(field, []).append(error.get("msg", "Invalid value."))
    first = next(iter(errors.values()))[0] if errors else "The given data was invalid."
    return JSONResponse(status_code=422, content={"message": first, "errors": errors})


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler: return clean JSON instead of leaking stack traces."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Server Error"})


app.include_router(auth_router.router)
app.include_router(articles_router.router)
app.include_router(collaborators_router.router)
app.include_router(notifications_router.router)
app.include_router(transactions_router.router)


@app.get("/health")
def health():
    return {"status": "ok"}
