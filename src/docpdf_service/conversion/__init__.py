"""
Domain layer for Word-to-PDF conversion.
Validates uploads, extracts text through a gateway, lays it out onto fixed
pages, writes the PDF artifact and schedules cleanup, so front-ends (HTTP or
others) can use the same core logic.
"""

from .cleanup import CleanupScheduler
from .errors import ConversionServiceError, FatalConversionError, IntakeRejected
from .interfaces import TextExtractorGateway, UploadedDocument
from .service import ConversionJob, ConversionOutcome, ConversionService, ErrorReport, JobStatus
