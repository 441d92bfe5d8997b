from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import time
import logging

from gradebook import storage
from gradebook.config import load_settings
from gradebook.routes import data, export, marks, results, students, subjects

settings = load_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

storage.DATA_DIR = settings.data_dir

app = FastAPI(title="Sequence Gradebook API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    t0 = time.perf_counter()
    logger.info("REQUEST  %s %s", request.method, request.url.path)
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - t0) * 1000
    logger.info("RESPONSE %s %s — status: %d, time: %.1fms", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


@app.exception_handler(storage.StoreError)
async def store_error_handler(request: Request, exc: storage.StoreError):
    logger.error("%s %s — store failure: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": f"Gradebook storage unavailable: {exc}"},
    )


app.include_router(students.router, prefix="/api")
app.include_router(subjects.router, prefix="/api")
app.include_router(marks.router, prefix="/api")
app.include_router(results.router, prefix="/api")
app.include_router(export.router, prefix="/api")
app.include_router(data.router, prefix="/api")


@app.get("/")
def root():
    return {"status": "ok", "message": "Sequence Gradebook API"}


def run():
    import uvicorn

    uvicorn.run("gradebook.main:app", host="127.0.0.1", port=8000)
