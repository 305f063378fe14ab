"""FastAPI application factory."""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dccon.api.routes import router
from dccon.core.errors import DcconError
from dccon.core.settings import settings
from dccon.services.dccon_downloader import DcconDownloader
from dccon.services.job_queue import JobQueue, PackageFetcher

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(fetcher: PackageFetcher | None = None) -> FastAPI:
    app = FastAPI(title=settings.app_name)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def startup() -> None:
        app.state.job_queue = JobQueue(fetcher or DcconDownloader())
        app.state.job_queue.start()
        logger.info(f"{settings.app_name} started")

    @app.on_event("shutdown")
    async def shutdown() -> None:
        await app.state.job_queue.stop()

    @app.exception_handler(DcconError)
    async def dccon_error_handler(request: Request, exc: DcconError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "요청 형식이 올바르지 않습니다."})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"error": "알 수 없는 오류가 발생했습니다."})

    app.include_router(router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
