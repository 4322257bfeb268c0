import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.config import settings
from storefront.database import create_tables
from storefront.presentation import api, admin_api
from storefront.presentation.errors import (
    http_exception_handler, validation_exception_handler, unhandled_exception_handler
)
from storefront.presentation.outbox_worker import outbox_worker

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управление жизненным циклом приложения"""
    # 1. Создаем таблицы
    await create_tables()
    logger.info("Таблицы созданы")

    # 2. Запускаем outbox worker в фоне
    worker_task = None
    if settings.OUTBOX_WORKER_ENABLED:
        worker_task = asyncio.create_task(outbox_worker())
        logger.info("Outbox worker запущен в фоне")

    yield

    logger.info("Приложение останавливается...")
    if worker_task:
        worker_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await worker_task


app = FastAPI(
    title="Storefront Order Service",
    description="Каталог, корзина и жизненный цикл заказов",
    version="1.0.0",
    lifespan=lifespan
)

app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.include_router(api.router, prefix="/api")
app.include_router(admin_api.router, prefix="/api")


@app.get("/")
async def root():
    return {"message": "Storefront Order Service работает"}


@app.get("/health")
async def health():
    return {"status": "healthy", "outbox_worker": settings.OUTBOX_WORKER_ENABLED}
