from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from gbforever.core.settings import settings
from gbforever.core.logging import setup_logging
from gbforever.core.exceptions import NotFoundError, InvalidStateError, StorageIOError
from gbforever.api.router import router

setup_logging(settings.log_level, settings.log_structured)

app = FastAPI(title="GB Forever", version="0.1.0")


@app.exception_handler(NotFoundError)
def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidStateError)
def invalid_state_handler(request: Request, exc: InvalidStateError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(StorageIOError)
def storage_error_handler(request: Request, exc: StorageIOError):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


app.include_router(router)
