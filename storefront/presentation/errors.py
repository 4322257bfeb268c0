import logging
from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.config import settings

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Сервис временно недоступен"


def service_unavailable(e: Exception) -> HTTPException:
    """Инфраструктурная ошибка: подробности только в лог (и в ответ в режиме DEBUG)"""
    logger.error(f"Необработанная ошибка: {e}", exc_info=True)
    detail = {"message": GENERIC_ERROR_MESSAGE}
    if settings.DEBUG:
        detail["error"] = str(e)
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc.detail, dict):
        content = {"success": False, **exc.detail}
    else:
        content = {"success": False, "message": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"]
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "message": "Ошибка валидации", "errors": errors}
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Необработанная ошибка {request.method} {request.url.path}: {exc}", exc_info=exc)
    content = {"success": False, "message": GENERIC_ERROR_MESSAGE}
    if settings.DEBUG:
        content["error"] = str(exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)
