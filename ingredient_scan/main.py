"""Main FastAPI application."""

import asyncio
import logging
import sys
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import (
    BackgroundTasks,
    Depends,
    FastAPI,
    File,
    HTTPException,
    Request,
    Response,
    UploadFile,
    WebSocket,
    status,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ingredient_scan.auth import get_current_user_id, user_id_from_token
from ingredient_scan.config import CORS_ORIGINS, LOG_LEVEL
from ingredient_scan.errors import NotFound, PermissionDenied, ScanServiceError
from ingredient_scan.pipeline import analyze_ingredients
from ingredient_scan.schemas import (
    AnalysisResult,
    AnalyzeRequest,
    FinalizeNotification,
    RetryResponse,
    ScanRecord,
    StartScanResponse,
)
from ingredient_scan.services import Services, build_services
from ingredient_scan.storage import StoredObject

logging.basicConfig(
    level=LOG_LEVEL,
    stream=sys.stdout,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {"image/jpeg": "jpg", "image/png": "png"}


def get_services(request: Request) -> Services:
    return request.app.state.services


def _owned_record(services: Services, scan_id: str, user_id: str) -> ScanRecord:
    record = services.records.get(scan_id)
    if record is None:
        raise NotFound("Scan not found")
    if record.owner_id != user_id:
        raise PermissionDenied("You do not have permission to view this scan")
    return record


def create_app(services: Optional[Services] = None, max_workers: int = 4) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.services = services or build_services()
        # one pipeline run per finalized upload, off the request path
        executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="scan-pipeline")
        remove_listener = app.state.services.storage.on_finalize(
            lambda obj: executor.submit(app.state.services.trigger.handle_upload, obj)
        )
        logger.info("Scan service started")
        try:
            yield
        finally:
            remove_listener()
            executor.shutdown(wait=True)
            logger.info("Scan service stopped")

    app = FastAPI(title="ingredient-scan", lifespan=lifespan)

    # -----------------------------------
    # CORS
    # -----------------------------------
    cors_origins = services.settings.cors_origins if services else CORS_ORIGINS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ScanServiceError)
    async def scan_error_handler(request: Request, exc: ScanServiceError):
        return JSONResponse(status_code=exc.http_status, content={"error": exc.to_dict()})

    # -----------------------------------
    # Tech endpoints
    # -----------------------------------

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/files/{bucket}/{name:path}")
    def get_file(bucket: str, name: str, services: Services = Depends(get_services)):
        if bucket != services.storage.bucket:
            raise HTTPException(404, "Not found")
        try:
            data = services.storage.download(name)
        except (FileNotFoundError, ValueError):
            raise HTTPException(404, "Not found")
        return Response(content=data, media_type=services.storage.content_type(name) or "application/octet-stream")

    # -----------------------------------
    # Scans
    # -----------------------------------

    @app.post("/scans", status_code=status.HTTP_202_ACCEPTED, response_model=StartScanResponse)
    async def start_scan(
        image: UploadFile = File(None),
        user_id: str = Depends(get_current_user_id),
        services: Services = Depends(get_services),
    ):
        if not image:
            raise HTTPException(422, "Image field is required")
        if image.content_type not in ALLOWED_CONTENT_TYPES:
            raise HTTPException(422, "Unsupported format (use jpeg/png)")

        scan_id = uuid.uuid4().hex
        extension = ALLOWED_CONTENT_TYPES[image.content_type]
        file_name = f"{scan_id}_{int(time.time() * 1000)}.{extension}"
        path = f"{services.settings.scan_namespace}/{user_id}/{file_name}"

        logger.info("Starting scan process for scanId: %s", scan_id)
        content = await image.read()
        await asyncio.to_thread(services.storage.upload, path, content, image.content_type)

        return StartScanResponse(scan_id=scan_id).model_dump(by_alias=True)

    @app.get("/scans")
    def list_scans(
        limit: Optional[int] = None,
        user_id: str = Depends(get_current_user_id),
        services: Services = Depends(get_services),
    ) -> List[dict]:
        limit = min(limit or services.settings.history_limit, services.settings.history_limit)
        return [record.to_wire() for record in services.records.list_by_owner(user_id, limit=limit)]

    @app.get("/scans/{scan_id}")
    def get_scan(
        scan_id: str,
        user_id: str = Depends(get_current_user_id),
        services: Services = Depends(get_services),
    ):
        return _owned_record(services, scan_id, user_id).to_wire()

    @app.post("/scans/{scan_id}/retry")
    def retry_scan(
        scan_id: str,
        user_id: str = Depends(get_current_user_id),
        services: Services = Depends(get_services),
    ):
        result = services.retry_handler.retry(scan_id, user_id)
        return RetryResponse(analysis_result=result).model_dump(by_alias=True)

    @app.post("/analyze", response_model=AnalysisResult)
    def analyze(
        payload: AnalyzeRequest,
        user_id: str = Depends(get_current_user_id),
        services: Services = Depends(get_services),
    ):
        return analyze_ingredients(services.engine, user_id, payload.ingredients)

    @app.websocket("/scans/{scan_id}/events")
    async def scan_events(websocket: WebSocket, scan_id: str, token: Optional[str] = None):
        services: Services = websocket.app.state.services
        try:
            user_id = user_id_from_token(token)
            _owned_record(services, scan_id, user_id)
        except ScanServiceError as e:
            await websocket.close(code=1008, reason=e.message)
            return

        await websocket.accept()
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()
        unsubscribe = services.records.subscribe(
            scan_id, lambda record: loop.call_soon_threadsafe(queue.put_nowait, record)
        )
        receiver = None
        update = None
        try:
            # snapshot after subscribing so no update falls in between;
            # queued records not newer than what was last sent are dropped
            snapshot = services.records.get(scan_id)
            last_version = snapshot.version
            await websocket.send_json(snapshot.to_wire())

            receiver = asyncio.ensure_future(websocket.receive())
            update = asyncio.ensure_future(queue.get())
            while True:
                done, _ = await asyncio.wait({receiver, update}, return_when=asyncio.FIRST_COMPLETED)
                if update in done:
                    record = update.result()
                    if record.version > last_version:
                        last_version = record.version
                        await websocket.send_json(record.to_wire())
                    update = asyncio.ensure_future(queue.get())
                if receiver in done:
                    if receiver.result()["type"] == "websocket.disconnect":
                        break
                    receiver = asyncio.ensure_future(websocket.receive())
        finally:
            unsubscribe()
            for pending in (receiver, update):
                if pending is not None:
                    pending.cancel()
            logger.info("Subscriber for scan %s disconnected", scan_id)

    # -----------------------------------
    # Storage notifications
    # -----------------------------------

    @app.post("/storage/finalize", status_code=status.HTTP_202_ACCEPTED)
    def storage_finalize(
        notification: FinalizeNotification,
        background_tasks: BackgroundTasks,
        services: Services = Depends(get_services),
    ):
        """Upload-finalize webhook for objects written to the bucket out of band."""
        obj = StoredObject(
            bucket=notification.bucket or services.storage.bucket,
            name=notification.name or "",
            content_type=notification.content_type,
        )
        background_tasks.add_task(services.trigger.handle_upload, obj)
        return {"accepted": True}

    return app


app = create_app()
