import socketio
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from codelingo.config import get_settings
from codelingo.database import lifespan
from codelingo.exceptions import (
    InvalidRequest,
    ProblemException,
    problem_exception_handler,
)
from codelingo.routes.problems import router as problems_router
from codelingo.routes.rooms import router as rooms_router
from codelingo.routes.translate import router as translate_router
from codelingo.routes.utility import router as utility_router
from codelingo.socketio import sio

app = FastAPI(title="codelingo API", lifespan=lifespan)

_origins = [o.strip() for o in get_settings().cors_allowed_origins.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
app.add_exception_handler(ProblemException, problem_exception_handler)


@app.exception_handler(RequestValidationError)
async def _validation_exception_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Convert FastAPI validation errors to an RFC 9457 invalid-request problem."""
    detail = "; ".join(
        f"{'.'.join(str(x) for x in e['loc'])}: {e['msg']}" for e in exc.errors()
    )
    problem = InvalidRequest.create(detail=detail)
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
    )


# Include routers
app.include_router(problems_router)
app.include_router(rooms_router)
app.include_router(translate_router)
app.include_router(utility_router)

# Mount Socket.IO
socket_app = socketio.ASGIApp(sio, other_asgi_app=app)
