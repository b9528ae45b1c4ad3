"""Upload validation for query photos and voice notes, stored inline as data URIs."""
import base64
import binascii
import io
import os
from typing import Tuple

from PIL import Image
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

ALLOWED_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "webp"}
ALLOWED_AUDIO_MIME_TYPES = {"audio/webm", "audio/mp4", "audio/ogg", "audio/wav", "audio/x-wav", "audio/aac", "audio/mpeg"}
DEFAULT_MAX_IMAGE_BYTES = 8 * 1024 * 1024  # 8 MB
DEFAULT_MAX_AUDIO_BYTES = 10 * 1024 * 1024  # 10 MB

_PIL_FORMAT_MIME = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
}


class MediaValidationError(ValueError):
    """Raised when an uploaded photo or voice note is unusable."""


def _fail_if(condition: bool, message: str) -> None:
    if condition:
        raise MediaValidationError(message)


def simple_mime_type(mime_type: str | None) -> str:
    """Strip codec parameters, e.g. ``audio/webm;codecs=opus`` -> ``audio/webm``."""
    return (mime_type or "").split(";", 1)[0].strip().lower()


def _read_upload(file: FileStorage, max_bytes: int) -> bytes:
    file.stream.seek(0, os.SEEK_END)
    size = file.stream.tell()
    file.stream.seek(0)
    _fail_if(size == 0, "Empty file")
    _fail_if(size > max_bytes, "File exceeds size limits")

    content = file.read()
    _fail_if(len(content) > max_bytes, "File exceeds size limits")
    file.stream.seek(0)
    return content


def validate_image_file(file: FileStorage, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES) -> Tuple[bytes, str]:
    _fail_if(not file, "No file provided")
    filename = secure_filename(file.filename or "")
    _fail_if(not filename or "." not in filename, "Unsupported file name")
    ext = filename.rsplit(".", 1)[1].lower()
    _fail_if(ext not in ALLOWED_IMAGE_EXTENSIONS, "File type not allowed")

    content = _read_upload(file, max_bytes)
    try:
        with Image.open(io.BytesIO(content)) as img:
            image_format = img.format
            img.verify()
    except Exception as exc:
        raise MediaValidationError("Image validation failed") from exc

    mime_type = _PIL_FORMAT_MIME.get(image_format or "")
    _fail_if(mime_type is None, "Invalid image data")
    return content, mime_type


def validate_audio_file(file: FileStorage, max_bytes: int = DEFAULT_MAX_AUDIO_BYTES) -> Tuple[bytes, str]:
    _fail_if(not file, "No file provided")
    mime_type = simple_mime_type(file.mimetype or file.content_type)
    _fail_if(mime_type not in ALLOWED_AUDIO_MIME_TYPES, "Audio format not supported")
    content = _read_upload(file, max_bytes)
    return content, mime_type


def to_data_uri(content: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(content).decode()}"


def decode_data_uri(data_uri: str) -> Tuple[bytes, str]:
    """Split a ``data:`` URI into raw bytes and its (codec-free) MIME type."""
    _fail_if(not data_uri, "Missing media payload")
    header, _, b64data = data_uri.partition(",")
    if not b64data:
        header, b64data = "", data_uri
    mime_type = "application/octet-stream"
    if header.startswith("data:"):
        mime_type = simple_mime_type(header[len("data:"):].replace(";base64", "")) or mime_type
    try:
        return base64.b64decode(b64data, validate=True), mime_type
    except (binascii.Error, ValueError) as exc:
        raise MediaValidationError("Invalid base64 media payload") from exc


def image_upload_to_data_uri(file: FileStorage | None, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES) -> str | None:
    if not file or not file.filename:
        return None
    content, mime_type = validate_image_file(file, max_bytes=max_bytes)
    return to_data_uri(content, mime_type)


def audio_upload_to_data_uri(file: FileStorage | None, max_bytes: int = DEFAULT_MAX_AUDIO_BYTES) -> str | None:
    if not file or not file.filename:
        return None
    content, mime_type = validate_audio_file(file, max_bytes=max_bytes)
    return to_data_uri(content, mime_type)
