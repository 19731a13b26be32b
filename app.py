import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from rootledger.config import settings
from rootledger.errors import IntegrityViolationError, LedgerError
from rootledger.routers.public import router as public_router
from rootledger.routers.mining import router as mining_router
from rootledger.db import init_db
from rootledger.middleware import MetricsMiddleware
from rootledger.service import get_sequencer

logger = logging.getLogger("rootledger")

app = FastAPI(
    title="rootledger",
    version="1.0.0",
    docs_url="/docs",
    redoc_url=None,
)

app.add_middleware(MetricsMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(public_router)
app.include_router(mining_router)


@app.exception_handler(LedgerError)
async def _ledger_error(request: Request, exc: LedgerError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.code})


@app.on_event("startup")
def _startup():
    logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    init_db()
    try:
        get_sequencer().recover()
    except IntegrityViolationError:
        # reads stay up; appends refuse until an operator clears the halt
        logger.error("starting with appends halted")
