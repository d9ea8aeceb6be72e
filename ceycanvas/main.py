import logging
from pathlib import Path

import socketio
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool

from ceycanvas.config import settings
from ceycanvas.database import ensure_db
from ceycanvas.errors import add_exception_handlers, error_response
from ceycanvas.routers import auth, health, messages
from ceycanvas.services.relay import sio

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
LOGGER = logging.getLogger(__name__)

app = FastAPI(title="CeyCanvas API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
add_exception_handlers(app)


@app.middleware("http")
async def connect_database(request: Request, call_next):
    try:
        await run_in_threadpool(ensure_db)
    except Exception as exc:
        LOGGER.error("Database initialization failed: %s", exc)
        return error_response(str(exc), 500)
    return await call_next(request)


uploads_dir = Path(settings.uploads_dir)
uploads_dir.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=str(uploads_dir)), name="uploads")

app.include_router(health.router, prefix="/api")
app.include_router(auth.router, prefix="/api")
app.include_router(messages.router, prefix="/api")

# Socket.IO handles /socket.io/; everything else falls through to FastAPI.
asgi_app = socketio.ASGIApp(sio, other_asgi_app=app)


@app.get("/")
def root():
    return {"message": "API is running..."}


def run() -> None:
    import uvicorn

    uvicorn.run("ceycanvas.main:asgi_app", host="0.0.0.0", port=settings.port)
