import logging
import sqlite3
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketplace.config import settings
from marketplace.database import init_db
from marketplace.errors import MarketplaceError
from marketplace.routers import applications, bulk, jobs, settlements

logger = logging.getLogger("marketplace")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Startup: create the schema, then integrity-check the database
    init_db(settings.db_path)
    conn = sqlite3.connect(str(settings.db_path))
    try:
        result = conn.execute("PRAGMA integrity_check").fetchone()
    finally:
        conn.close()
    if result and result[0] == "ok":
        logger.info("Database integrity check passed (%s).", settings.db_path)
    else:
        logger.error("DATABASE INTEGRITY CHECK FAILED: %s", result)
    yield


app = FastAPI(
    title="Fixer Marketplace",
    description="Job matching and settlement engine for a local-services marketplace",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": exc.code, "message": exc.message}},
    )


app.include_router(jobs.router, prefix=settings.api_prefix)
app.include_router(applications.job_applications_router, prefix=settings.api_prefix)
app.include_router(settlements.job_settlement_router, prefix=settings.api_prefix)
app.include_router(applications.router, prefix=settings.api_prefix)
app.include_router(bulk.router, prefix=settings.api_prefix)
app.include_router(settlements.router, prefix=settings.api_prefix)


@app.get("/health")
async def health():
    return {"status": "ok", "version": "0.1.0"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("marketplace.main:app", host=settings.host, port=settings.port)
