"""FastAPI application entry point."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketportal.api import audit_logs, auth, documents, role_assignments, roles
from marketportal.api.exception_handlers import register_exception_handlers
from marketportal.core.config import settings


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


configure_logging()

app = FastAPI(title="Market Portal Role Workflow", version="1.0.0")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Routes
app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(roles.router, tags=["roles"])
app.include_router(role_assignments.router, prefix="/role-assignments",
                   tags=["role-assignments"])
# Document decisions (role-level and user-level identity documents)
app.include_router(documents.router, tags=["documents"])
app.include_router(audit_logs.router, prefix="/audit-logs",
                   tags=["audit-logs"])


@app.get("/")
def read_root():
    return {"message": "Market Portal Role Workflow API"}
