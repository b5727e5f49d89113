"""Main FastAPI application for the alumni network messaging core."""
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from alumnet.db.init import init_db
from alumnet.errors import MessagingError
from alumnet.middleware.cors import add_cors_middleware
from alumnet.utils.logger import configure_logging, get_logger

configure_logging(os.environ.get("LOG_LEVEL", "INFO"))
logger = get_logger("alumnet.main")

# Create FastAPI application
app = FastAPI(
    title="AlumNet Messaging API",
    description="Direct messaging, presence and delivery for the alumni network",
    version="1.0.0",
    contact={
        "name": "AlumNet Development Team",
    },
)

# Add CORS middleware
add_cors_middleware(app)


@app.on_event("startup")
async def startup_event():
    """Initialize database tables on startup."""
    try:
        init_db()
        logger.info("Database tables initialized")
    except Exception:
        logger.exception("Database initialization failed, database operations may fail")

    logger.info("Application startup complete")


# --------------------------------------------------------------------
# Error envelope: {"success": false, "error": "..."}
# --------------------------------------------------------------------
@app.exception_handler(MessagingError)
async def messaging_error_handler(request: Request, exc: MessagingError):
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"success": False, "error": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", path=request.url.path, method=request.method)
    return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


@app.get("/")
async def root():
    """Root endpoint - API welcome message."""
    return {
        "message": "Welcome to the AlumNet Messaging API",
        "title": "AlumNet Messaging API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "websocket": "/ws",
    }


# Import and include routers
from alumnet.routers import admin_router, connections_router, messages_router, socket_router  # noqa: E402
app.include_router(messages_router, prefix="/api/messages")  # /api/messages/conversation/{id}/send, ...
app.include_router(admin_router, prefix="/api/admin")  # /api/admin/send-bulk, ...
app.include_router(connections_router, prefix="/api/connection")  # /api/connection/request, ...
app.include_router(socket_router)  # /ws


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "alumnet.main:app",
        host="0.0.0.0",
        port=int(os.environ.get("PORT", "8000")),
        reload=os.environ.get("ENVIRONMENT", "development") != "production",
    )
