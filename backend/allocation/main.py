import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from allocation.api.routes import batch_assignments, health, roster, teacher_assignments
from allocation.core.config import get_settings
from allocation.core.exceptions import AppError

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "reason": exc.reason, "details": exc.details},
    )


app = FastAPI(title=settings.project_name)
app.add_exception_handler(AppError, app_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(roster.router, prefix=settings.api_prefix, tags=["roster"])
app.include_router(teacher_assignments.router, prefix=settings.api_prefix, tags=["teacher-assignments"])
app.include_router(batch_assignments.router, prefix=settings.api_prefix, tags=["batch-assignments"])
