import base64
import io

import pytest
from werkzeug.datastructures import FileStorage

from tests.conftest import png_bytes
from utils.ai_auditor import AIServiceError, best_effort_transcript, parse_audit_payload, _safe_json_loads
from utils.media_utils import (
    MediaValidationError,
    decode_data_uri,
    image_upload_to_data_uri,
    validate_audio_file,
    validate_image_file,
)


def test_decode_data_uri_strips_codec():
    uri = "data:audio/webm;codecs=opus;base64," + base64.b64encode(b"abc").decode()
    assert decode_data_uri(uri) == (b"abc", "audio/webm")


def test_decode_data_uri_rejects_garbage():
    with pytest.raises(MediaValidationError):
        decode_data_uri("data:image/png;base64,@@@")


def test_image_validation_sniffs_real_format():
    upload = FileStorage(stream=io.BytesIO(png_bytes()), filename="fix.jpg", content_type="image/jpeg")
    content, mime_type = validate_image_file(upload)
    assert mime_type == "image/png"
    assert content.startswith(b"\x89PNG")


def test_image_validation_rejects_non_images():
    upload = FileStorage(stream=io.BytesIO(b"not an image"), filename="fix.png")
    with pytest.raises(MediaValidationError):
        validate_image_file(upload)


def test_missing_upload_yields_no_data_uri():
    assert image_upload_to_data_uri(None) is None


def test_audio_validation_checks_mime_type():
    ok = FileStorage(stream=io.BytesIO(b"voice"), filename="note.webm", content_type="audio/webm;codecs=opus")
    assert validate_audio_file(ok) == (b"voice", "audio/webm")

    bad = FileStorage(stream=io.BytesIO(b"voice"), filename="note.txt", content_type="text/plain")
    with pytest.raises(MediaValidationError):
        validate_audio_file(bad)


def test_parse_audit_payload():
    assert parse_audit_payload({"isResolved": False, "reason": "Still leaking"}) == {
        "isResolved": False,
        "reason": "Still leaking",
    }
    assert parse_audit_payload({"isResolved": "true"})["isResolved"] is True
    with pytest.raises(AIServiceError):
        parse_audit_payload({"reason": "no flag"})
    with pytest.raises(AIServiceError):
        parse_audit_payload(["not", "an", "object"])


def test_safe_json_loads_tolerates_code_fences():
    raw = '```json\n{"isResolved": true, "reason": "clean"}\n```'
    assert _safe_json_loads(raw) == {"isResolved": True, "reason": "clean"}


def test_transcript_is_none_without_api_key(ctx):
    uri = "data:audio/webm;base64," + base64.b64encode(b"voice").decode()
    assert best_effort_transcript(uri) is None
    assert best_effort_transcript(None) is None
