import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from safari_ops.auth import hash_password
from safari_ops.config import DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD, LOG_LEVEL
from safari_ops.database import Base, engine, SessionLocal
from safari_ops.models import User
from safari_ops.routes import attendance, auth, notifications, operations, vehicles
from safari_ops.store import StoreError

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Create tables (safe if already exist; Alembic handles migrations in production)
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Safari Ops", version="1.0.0")

app.include_router(auth.router)
app.include_router(operations.router)
app.include_router(vehicles.router)
app.include_router(attendance.router)
app.include_router(notifications.router)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("Data store error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "The data store rejected the operation."})


@app.on_event("startup")
def create_default_admin():
    """Create default super admin on first startup."""
    db = SessionLocal()
    try:
        existing = db.query(User).filter(User.email == DEFAULT_ADMIN_EMAIL).first()
        if not existing:
            admin = User(
                email=DEFAULT_ADMIN_EMAIL,
                name="System Administrator",
                hashed_password=hash_password(DEFAULT_ADMIN_PASSWORD),
                role="super_admin",
            )
            db.add(admin)
            db.commit()
            logger.info("Created default admin account %s", DEFAULT_ADMIN_EMAIL)
    finally:
        db.close()


@app.get("/api/health", tags=["health"])
def health_check():
    return {"status": "ok", "service": "Safari Ops", "version": app.version}
