# app/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.db import create_db_and_tables
from app.errors import register_error_handlers
from app.routers import (
    auth_routes,
    availability_routes,
    bookings_routes,
    categories_routes,
    reports_routes,
    services_routes,
    users_routes,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    create_db_and_tables()
    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Booking Platform API", lifespan=lifespan)
register_error_handlers(app)

app.include_router(auth_routes.router)
app.include_router(users_routes.router)
app.include_router(categories_routes.router)
app.include_router(services_routes.router)
app.include_router(availability_routes.router)
app.include_router(bookings_routes.router)
app.include_router(reports_routes.router)


@app.get("/health")
def health_check():
    return {"status": "ok"}
