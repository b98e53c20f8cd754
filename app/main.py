import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from services.errors import FormValidationError, NotFoundError
from .api.router import router as api_router

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Не удалось выполнить операцию. Попробуйте ещё раз."

app = FastAPI(title="Pixoraa Hub")
app.include_router(api_router, prefix="/api")


@app.exception_handler(FormValidationError)
async def form_validation_handler(request: Request, exc: FormValidationError):
    logger.warning("⚠️ %s %s: %s", request.method, request.url.path, exc.errors)
    return JSONResponse(
        status_code=422,
        content={"detail": "Исправьте ошибки перед сохранением.", "errors": exc.errors},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    logger.warning("❗ %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    logger.warning("⚠️ %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("❌ Ошибка при обработке %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": GENERIC_ERROR})


@app.get("/ping")
def ping():
    return {"message": "pong"}
