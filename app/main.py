"""
Recovery-Tracker API server.

Run with any ASGI server, e.g. `uvicorn app.main:app`.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.routes import monitor, router
from app.core.database import init_db


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_db()
    monitor.start()
    try:
        yield
    finally:
        monitor.stop()


app = FastAPI(title="Recovery-Tracker", version="1.0.0", lifespan=lifespan)
app.include_router(router)


@app.get("/")
def root():
    return {"message": "Recovery-Tracker API is running."}
