import asyncio
import logging
import os
from typing import Optional

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.responses import FileResponse, JSONResponse
from starlette.types import Receive, Scope, Send

from docpdf_service import __version__
from docpdf_service.config import Settings, get_settings
from docpdf_service.conversion import (
    CleanupScheduler,
    ConversionOutcome,
    ConversionService,
    IntakeRejected,
    TextExtractorGateway,
    UploadedDocument,
)
from docpdf_service.conversion.adapters import DoclingExtractor, LocalStorage
from docpdf_service.conversion.assembler import PDF_CONTENT_TYPE, delivery_headers
from docpdf_service.conversion.utils import declared_extension, utc_timestamp

LOGGER = logging.getLogger(__name__)

app = FastAPI(
    title="Word to PDF Converter",
    version=os.getenv("DOC_SERVICE_VERSION", __version__),
    description="Converts uploaded Word documents (.doc, .docx) into paginated PDF files.",
)

SERVICE: Optional[ConversionService] = None
STORAGE: Optional[LocalStorage] = None


def build_service(settings: Settings, extractor: Optional[TextExtractorGateway] = None) -> tuple[ConversionService, LocalStorage]:
    storage = LocalStorage(str(settings.data_dir))
    cleanup = CleanupScheduler(
        storage.incoming_dir,
        storage.outgoing_dir,
        delay=settings.cleanup_delay_sec,
        max_age=settings.max_file_age_sec,
        sweep_interval=settings.sweep_interval_sec,
    )
    service = ConversionService(
        extractor=extractor or DoclingExtractor(),
        cleanup=cleanup,
        max_file_size=settings.max_file_size,
        outgoing_dir=str(storage.outgoing_dir),
        production=settings.is_production,
    )
    return service, storage


class DeliveryResponse(FileResponse):
    """Streams the artifact, then hands the outcome back for deferred cleanup."""

    def __init__(self, outcome: ConversionOutcome, service: ConversionService) -> None:
        artifact = outcome.artifact
        assert artifact is not None
        super().__init__(
            path=str(artifact.path),
            media_type=PDF_CONTENT_TYPE,
            headers=delivery_headers(artifact),
        )
        self._outcome = outcome
        self._service = service

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        error: Optional[BaseException] = None
        try:
            await super().__call__(scope, receive, send)
        except Exception as e:
            error = e
            raise
        finally:
            self._service.finish_delivery(self._outcome, error)


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message, "error": code})


@app.on_event("startup")
async def _startup() -> None:
    global SERVICE, STORAGE
    if SERVICE is None:
        SERVICE, STORAGE = build_service(get_settings())
    SERVICE.cleanup.ensure_directories()
    await SERVICE.cleanup.start()


@app.on_event("shutdown")
async def _shutdown() -> None:
    if SERVICE is not None:
        await SERVICE.cleanup.stop()


@app.exception_handler(404)
async def _not_found(request: Request, exc: Exception) -> JSONResponse:
    return _error(404, "NOT_FOUND", f"Not Found - {request.url.path}")


@app.get("/api/health")
def health() -> dict[str, str]:
    """Basic health check endpoint."""
    return {
        "status": "OK",
        "message": "Word to PDF Converter API is running",
        "timestamp": utc_timestamp(),
        "version": __version__,
    }


@app.post("/api/convert")
async def convert(file: Optional[UploadFile] = File(None)):
    """Convert a Word document uploaded as the multipart part named "file".

    Returns the PDF as an attachment, or a JSON error body
    ``{success: false, message, error}``.
    """
    if file is None or not file.filename:
        return _error(400, "NO_FILE", "No file uploaded. Please select a Word document.")

    assert SERVICE is not None and STORAGE is not None

    async def read_chunk(n: int) -> bytes:
        return await file.read(n)

    try:
        input_path, size_bytes = await STORAGE.save_upload(file.filename, read_chunk, SERVICE.max_file_size)
    except IntakeRejected as e:
        LOGGER.info("Upload rejected (%s): %s", e.code, e.message)
        return _error(e.status_code, e.code, e.message)
    except OSError as e:
        LOGGER.error("Could not store upload %s: %s", file.filename, e)
        return _error(500, "FILE_NOT_FOUND", "File upload failed. Please try again.")

    document = UploadedDocument(
        path=input_path,
        original_filename=file.filename,
        declared_mime_type=(file.content_type or "").strip().lower(),
        declared_extension=declared_extension(file.filename),
        byte_size=size_bytes,
    )

    outcome = await asyncio.to_thread(SERVICE.convert, document)
    if not outcome.success:
        report = outcome.error
        assert report is not None
        return JSONResponse(status_code=report.status_code, content=report.to_dict())

    return DeliveryResponse(outcome, SERVICE)


def run() -> None:
    """Run a development ASGI server using uvicorn.

    Exposes the app at host:port (default 0.0.0.0:8080). Set PORT env var to override.
    """
    import uvicorn

    settings = get_settings()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    LOGGER.info("Environment: %s, data dir: %s", settings.environment, settings.data_dir)
    uvicorn.run("docpdf_service.webapi:app", host=settings.host, port=settings.port, reload=settings.reload)


if __name__ == "__main__":
    run()
