# app/main.py
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
from app.config import CORS_ORIGINS, LOG_LEVEL
from app.database.database import init_db

# Import routers
from app.routers.test_router import router as test_router
from app.routers.result_router import router as result_router
from app.routers.progress_router import router as progress_router

# Configure logging
logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)

init_db()

app = FastAPI(title="IELTS Practice API")

# CORS middleware configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors (400), rejected before any grading."""
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    message = errors[0]["msg"] if errors else "Invalid request"
    logger.info(f"Rejected request to {request.url.path}: {message}")
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": message, "errors": errors},
    )


# Include routers
app.include_router(test_router)
app.include_router(result_router)
app.include_router(progress_router)


@app.get("/")
async def root():
    return {"message": "IELTS Practice API is running"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
