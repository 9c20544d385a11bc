# backend/main.py
import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from config import settings
from database import init_db
from utils.errors import register_exception_handlers

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Routers
from routes.auth import router as auth_router
from routes.admin import router as admin_router
from routes.products import router as products_router
from routes.reports import router as reports_router
from routes.upload import router as upload_router
from routes.logs import router as logs_router

init_db()

app = FastAPI(title="Inventory Tracker API", version="1.0.0")

register_exception_handlers(app)

# Uploaded images are served straight from disk
upload_dir = Path(settings.UPLOAD_DIR)
(upload_dir / "products").mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=str(upload_dir)), name="uploads")

# CORS Configuration
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
if settings.FRONTEND_URL:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(products_router)
app.include_router(reports_router)
app.include_router(upload_router)
app.include_router(logs_router)

logger.info("Inventory Tracker API ready (database: %s)", settings.DATABASE_URL.split("://", 1)[0])


@app.get("/")
def read_root():
    return {"success": True, "message": "Inventory Tracker API is running"}


@app.get("/health")
def health():
    return {"success": True, "status": "ok"}
