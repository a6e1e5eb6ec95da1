import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from app.config import DB_CREATE_TABLES, LOG_LEVEL
from app.db.postgres import create_tables
from app.bookings.router import router as bookings_router
from app.payroll.router import router as payroll_router

logging.basicConfig(level=LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if DB_CREATE_TABLES:
        await create_tables()
    yield


app = FastAPI(title="Nanny Booking Service", lifespan=lifespan)

app.include_router(bookings_router)
app.include_router(payroll_router)

@app.get("/health")
def health():
    return {"status": "ok"}
