from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from fastapi.responses import FileResponse
from fastapi.testclient import TestClient

from conftest import DOCX_MIME, FakeClock, FakeTimer, StaticExtractor, read_pdf
from docpdf_service import webapi
from docpdf_service.config import Settings
from docpdf_service.conversion.adapters import DoclingExtractor, LocalStorage


@pytest.fixture()
def client(monkeypatch: pytest.MonkeyPatch, make_service, tmp_path: Path):
    def _client(extractor: StaticExtractor | None = None, **kwargs) -> TestClient:
        service = make_service(extractor or StaticExtractor("Hello from the document"), **kwargs)
        monkeypatch.setattr(webapi, "SERVICE", service)
        monkeypatch.setattr(webapi, "STORAGE", LocalStorage(tmp_path))
        return TestClient(webapi.app)

    return _client


def test_health(client) -> None:
    response = client().get("/api/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "OK"
    assert body["version"]


def test_convert_returns_pdf_attachment(client, docx_bytes: bytes, timer: FakeTimer, clock: FakeClock, tmp_path: Path) -> None:
    files = {"file": ("report.docx", docx_bytes, DOCX_MIME)}

    response = client().post("/api/convert", files=files)

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["cache-control"] == "no-cache"
    assert 'filename="report.pdf"' in response.headers["content-disposition"]
    assert int(response.headers["content-length"]) == len(response.content)
    assert "Hello from the document" in read_pdf(response.content).pages[0].extract_text()

    # delivery finished: both files go after the grace delay
    assert len(timer.pending) == 1
    assert len(list((tmp_path / "incoming").iterdir())) == 1
    clock.advance(5)
    timer.fire_due()
    assert list((tmp_path / "incoming").iterdir()) == []
    assert list((tmp_path / "outgoing").iterdir()) == []


def test_corrupt_upload_still_succeeds_with_notice(client) -> None:
    files = {"file": ("corrupt.docx", b"\xff\xff\xff\xff", DOCX_MIME)}

    response = client().post("/api/convert", files=files)

    assert response.status_code == 200
    text = read_pdf(response.content).pages[0].extract_text()
    assert "corrupt.docx" in text
    assert "Generated at:" in text


def test_missing_file_part(client) -> None:
    response = client().post("/api/convert", files={"attachment": ("a.docx", b"PK\x03\x04", DOCX_MIME)})
    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "message": "No file uploaded. Please select a Word document.",
        "error": "NO_FILE",
    }


@pytest.mark.parametrize(
    ("filename", "content", "mime", "code"),
    [
        ("notes.txt", b"hello", "text/plain", "INVALID_FILE_TYPE"),
        ("report.docx", b"PK\x03\x04", "application/octet-stream", "INVALID_MIME_TYPE"),
        ("report.docx", b"", DOCX_MIME, "EMPTY_FILE"),
    ],
)
def test_hard_failures(client, filename: str, content: bytes, mime: str, code: str) -> None:
    response = client().post("/api/convert", files={"file": (filename, content, mime)})
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == code


def test_oversize_upload(client, docx_bytes: bytes, tmp_path: Path) -> None:
    extractor = StaticExtractor("text")
    response = client(extractor, max_file_size=64).post(
        "/api/convert", files={"file": ("big.docx", docx_bytes, DOCX_MIME)}
    )
    assert response.status_code == 400
    assert response.json()["error"] == "FILE_TOO_LARGE"
    assert extractor.calls == []
    assert list((tmp_path / "incoming").iterdir()) == []


def test_fatal_failure_returns_500(client, docx_bytes: bytes) -> None:
    with patch("docpdf_service.conversion.service.render_pdf", side_effect=RuntimeError("boom")):
        response = client().post("/api/convert", files={"file": ("report.docx", docx_bytes, DOCX_MIME)})
    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "CONVERSION_ERROR"
    assert body["message"] == "An error occurred during file conversion"


def test_unknown_route(client) -> None:
    response = client().get("/api/nope")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Not Found - /api/nope", "error": "NOT_FOUND"}


def test_build_service_from_settings(tmp_path: Path) -> None:
    settings = Settings(data_dir=tmp_path, max_file_size=123, environment="production")
    service, storage = webapi.build_service(settings, StaticExtractor("x"))
    assert storage.incoming_dir == tmp_path.resolve() / "incoming"
    assert service.cleanup.directories == (storage.incoming_dir, storage.outgoing_dir)


def test_build_service_defaults_to_docling(tmp_path: Path) -> None:
    service, _ = webapi.build_service(Settings(data_dir=tmp_path))
    assert isinstance(service._extractor, DoclingExtractor)


def test_long_non_ascii_filename_converts(client, docx_bytes: bytes) -> None:
    filename = "報告" * 45 + ".docx"

    response = client().post("/api/convert", files={"file": (filename, docx_bytes, DOCX_MIME)})

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"].startswith("attachment; filename*=utf-8''")


def test_storage_failure_returns_json_error(
    client, docx_bytes: bytes, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    test_client = client()
    monkeypatch.setattr(webapi.STORAGE, "upload_path", lambda filename: tmp_path / "missing" / "x.docx")

    response = test_client.post("/api/convert", files={"file": ("report.docx", docx_bytes, DOCX_MIME)})

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "message": "File upload failed. Please try again.",
        "error": "FILE_NOT_FOUND",
    }


def test_delivery_transport_error_still_schedules_cleanup(
    client, docx_bytes: bytes, monkeypatch: pytest.MonkeyPatch, timer: FakeTimer, clock: FakeClock, tmp_path: Path
) -> None:
    test_client = client()
    service = webapi.SERVICE
    outcomes = []
    convert = service.convert

    def recording_convert(document):
        outcome = convert(document)
        outcomes.append(outcome)
        return outcome

    monkeypatch.setattr(service, "convert", recording_convert)

    with patch.object(FileResponse, "__call__", side_effect=OSError("connection reset")):
        with pytest.raises(OSError):
            test_client.post("/api/convert", files={"file": ("report.docx", docx_bytes, DOCX_MIME)})

    job = outcomes[0].job
    assert job.status == "delivered"
    assert outcomes[0].success
    assert len(timer.pending) == 1

    clock.advance(5)
    timer.fire_due()
    assert job.status == "cleaned"
    assert list((tmp_path / "incoming").iterdir()) == []
    assert list((tmp_path / "outgoing").iterdir()) == []
