from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import logging

# Import database components
from app.database.database import engine, Base

# Import middleware
from app.common.middleware import RequestLoggingMiddleware

# Import routers
from app.modules.auth.router import auth_router
from app.modules.reference.router import router as reference_router
from app.modules.clients.router import router as clients_router
from app.modules.points_of_sale.router import router as points_of_sale_router
from app.modules.certificates.router import router as certificates_router
from app.modules.invoices.router import router as invoices_router

# Import models for table creation
import app.modules.auth.models
import app.modules.clients.models
import app.modules.points_of_sale.models
import app.modules.certificates.models
import app.modules.invoices.models

from app.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="ARCA Invoicing API",
    description="Electronic invoicing API for Argentina (ARCA/AFIP) built with FastAPI and PostgreSQL",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

# Add middleware (order matters!)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(RequestLoggingMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(reference_router)  # Public endpoints
app.include_router(auth_router, prefix="/auth", tags=["Auth"])
app.include_router(clients_router)
app.include_router(points_of_sale_router)
app.include_router(certificates_router)
app.include_router(invoices_router)

# Create database tables (only for development - use migrations in production)
if settings.ENVIRONMENT == "development":
    Base.metadata.create_all(bind=engine)


@app.get("/")
async def read_root():
    return {
        "message": "ARCA Invoicing API is running",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


@app.on_event("startup")
async def startup_event():
    logger.info("ARCA Invoicing API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")
    logger.info(f"ARCA token cache backend: {settings.ARCA_TOKEN_CACHE_BACKEND}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("ARCA Invoicing API shutting down...")
