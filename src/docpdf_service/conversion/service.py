import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from .assembler import render_pdf, write_artifact
from .cleanup import CleanupScheduler
from .errors import FatalConversionError, IntakeRejected, InvalidTransition
from .fallback import build_notice_lines
from .interfaces import ExtractedContent, OutputArtifact, TextExtractorGateway, UploadedDocument
from .layout import DEFAULT_LAYOUT, LayoutSettings, layout_lines, split_lines
from .validation import check_integrity, validate_intake

LOGGER = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "An error occurred during file conversion"


class JobStatus:
    PENDING = "pending"
    VALIDATING = "validating"
    EXTRACTING = "extracting"
    FALLING_BACK = "falling_back"
    LAYING_OUT = "laying_out"
    ASSEMBLING = "assembling"
    DELIVERED = "delivered"
    CLEANED = "cleaned"
    FAILED = "failed"


TRANSITIONS: dict[str, frozenset[str]] = {
    JobStatus.PENDING: frozenset({JobStatus.VALIDATING, JobStatus.FAILED}),
    JobStatus.VALIDATING: frozenset({JobStatus.EXTRACTING, JobStatus.FALLING_BACK, JobStatus.FAILED}),
    JobStatus.EXTRACTING: frozenset({JobStatus.LAYING_OUT, JobStatus.FALLING_BACK, JobStatus.FAILED}),
    JobStatus.FALLING_BACK: frozenset({JobStatus.LAYING_OUT, JobStatus.FAILED}),
    JobStatus.LAYING_OUT: frozenset({JobStatus.ASSEMBLING, JobStatus.FAILED}),
    JobStatus.ASSEMBLING: frozenset({JobStatus.DELIVERED, JobStatus.FAILED}),
    JobStatus.DELIVERED: frozenset({JobStatus.CLEANED}),
    JobStatus.CLEANED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


@dataclass
class ErrorReport:
    code: str
    message: str
    status_code: int
    detail: Optional[str] = None

    def to_dict(self) -> dict[str, object]:
        body: dict[str, object] = {"success": False, "message": self.message, "error": self.code}
        if self.detail is not None:
            body["detail"] = self.detail
        return body


@dataclass
class ConversionJob:
    document: UploadedDocument
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: str = JobStatus.PENDING
    history: list[str] = field(default_factory=lambda: [JobStatus.PENDING])
    artifact: Optional[OutputArtifact] = None
    used_fallback: bool = False
    error: Optional[ErrorReport] = None

    def advance(self, status: str) -> None:
        if status not in TRANSITIONS[self.status]:
            raise InvalidTransition(f"job {self.id}: {self.status} -> {status}")
        LOGGER.debug("job %s: %s -> %s", self.id, self.status, status)
        self.status = status
        self.history.append(status)

    @property
    def succeeded(self) -> bool:
        return self.status in (JobStatus.DELIVERED, JobStatus.CLEANED)


@dataclass
class ConversionOutcome:
    job: ConversionJob

    @property
    def success(self) -> bool:
        return self.job.succeeded

    @property
    def artifact(self) -> Optional[OutputArtifact]:
        return self.job.artifact

    @property
    def error(self) -> Optional[ErrorReport]:
        return self.job.error


class ConversionService:
    """Core domain service turning one uploaded Word document into one PDF.

    Framework-agnostic and synchronous: the web layer runs `convert` in a
    worker thread, streams the artifact, then calls `finish_delivery` so the
    cleanup scheduler can remove both files after the grace delay.
    """

    def __init__(
        self,
        extractor: TextExtractorGateway,
        cleanup: CleanupScheduler,
        *,
        max_file_size: int,
        outgoing_dir: str,
        production: bool = False,
        layout: LayoutSettings = DEFAULT_LAYOUT,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._extractor = extractor
        self._cleanup = cleanup
        self._max_file_size = max_file_size
        self._outgoing_dir = outgoing_dir
        self._production = production
        self._layout = layout
        self._now = now

    @property
    def cleanup(self) -> CleanupScheduler:
        return self._cleanup

    @property
    def max_file_size(self) -> int:
        return self._max_file_size

    def convert(self, document: UploadedDocument) -> ConversionOutcome:
        job = ConversionJob(document=document)
        LOGGER.info("Converting file: %s (job %s)", document.original_filename, job.id)

        job.advance(JobStatus.VALIDATING)
        try:
            validate_intake(document, self._max_file_size)
        except IntakeRejected as e:
            LOGGER.info("Upload rejected (%s): %s", e.code, e.message)
            job.error = ErrorReport(code=e.code, message=e.message, status_code=e.status_code)
            job.advance(JobStatus.FAILED)
            self._cleanup.schedule_deferred_delete([document.path])
            return ConversionOutcome(job)

        try:
            lines = self._text_lines(job)
            job.advance(JobStatus.LAYING_OUT)
            pages = layout_lines(lines, self._layout)
            job.advance(JobStatus.ASSEMBLING)
            data = render_pdf(pages, self._layout)
            artifact = write_artifact(data, document.original_filename, self._outgoing_dir)
        except Exception as e:
            self._fail(job, e)
            return ConversionOutcome(job)

        job.artifact = artifact
        job.advance(JobStatus.DELIVERED)
        LOGGER.info(
            "Conversion successful: %s -> %s (%d page(s), fallback=%s)",
            document.original_filename,
            artifact.path.name,
            len(pages),
            job.used_fallback,
        )
        return ConversionOutcome(job)

    def finish_delivery(self, outcome: ConversionOutcome, error: Optional[BaseException] = None) -> None:
        """Record the end of a delivery attempt and schedule removal of the job's files."""
        job = outcome.job
        if error is not None:
            LOGGER.error("Download error for job %s: %s", job.id, error)
        else:
            LOGGER.info("File downloaded successfully (job %s)", job.id)

        def mark_cleaned() -> None:
            if job.status == JobStatus.DELIVERED:
                job.advance(JobStatus.CLEANED)

        paths = [job.document.path, job.artifact.path if job.artifact else None]
        self._cleanup.schedule_deferred_delete(paths, on_done=mark_cleaned)

    def _text_lines(self, job: ConversionJob) -> list[str]:
        document = job.document
        integrity = check_integrity(document.path, document.declared_mime_type)

        content = ExtractedContent.unusable()
        if integrity.ok:
            job.advance(JobStatus.EXTRACTING)
            content = self._extract(document)

        if content.usable:
            return split_lines(content.text or "")

        job.advance(JobStatus.FALLING_BACK)
        job.used_fallback = True
        return build_notice_lines(document.original_filename, self._now())

    def _extract(self, document: UploadedDocument) -> ExtractedContent:
        try:
            text = self._extractor.extract_text(str(document.path))
        except Exception as e:
            LOGGER.warning("Text extraction failed for %s, using fallback notice: %s", document.original_filename, e)
            return ExtractedContent.unusable()
        content = ExtractedContent.from_text(text)
        if not content.usable:
            LOGGER.warning("No text extracted from %s, using fallback notice", document.original_filename)
        return content

    def _fail(self, job: ConversionJob, exc: Exception) -> None:
        LOGGER.error("Conversion process error for job %s", job.id, exc_info=exc)
        detail = None if self._production else f"{type(exc).__name__}: {exc}"
        job.error = ErrorReport(
            code="CONVERSION_ERROR",
            message=GENERIC_FAILURE_MESSAGE,
            status_code=500,
            detail=detail,
        )
        job.advance(JobStatus.FAILED)
        partial = [job.document.path]
        if isinstance(exc, FatalConversionError):
            partial.append(exc.path)
        self._cleanup.delete_now(partial)
        self._cleanup.schedule_deferred_delete(partial)
