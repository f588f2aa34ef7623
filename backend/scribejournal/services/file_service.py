"""
ScribeJournal Backend — Image Upload Validation
=================================================

What:  Validates uploaded page images before they join a draft.
How:   Extension allow-list, size bounds, then the real content type read from
       the file header with python-magic (libmagic). The whole
       batch is validated before anything is appended, so a rejected upload
       never triggers a transcription call.
Who:   Called by SubmissionPipeline.add_images() (and through it, the draft route).

Allow-list:
    JPEG, JPG, PNG, GIF, BMP. The client's declared type is only checked to
    reject explicit non-image types; the type sent to the vision model is
    always the detected one, so a renamed non-image never reaches it.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

import magic

from scribejournal.exceptions import ValidationError

logger = logging.getLogger(__name__)

# ── Allowed File Types ────────────────────────────────────────────────────
ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif", ".bmp"}

ALLOWED_MIME_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/bmp",
    "image/x-ms-bmp",
}

GENERIC_MIME_TYPES = {"", "application/octet-stream"}

MIME_ALIASES = {"image/jpg": "image/jpeg", "image/x-ms-bmp": "image/bmp"}

# libmagic only needs the header
SNIFF_BYTES = 2048


@dataclass(frozen=True)
class ImageUpload:
    """One uploaded file as received from the client."""

    filename: str
    data: bytes = field(repr=False)
    content_type: Optional[str] = None


@dataclass(frozen=True)
class ValidatedImage:
    """An upload that passed the allow-list, with its resolved MIME type."""

    filename: str
    mime_type: str
    data: bytes = field(repr=False)


class FileService:
    """
    Stateless validator for page images.

    Validation order (cheapest first):
        1. Extension check
        2. Size check (empty files and files over max_file_size)
        3. MIME check: declared type, then the bytes themselves
    """

    def __init__(self, max_file_size: int, max_files_per_upload: int = 20):
        self.max_file_size = max_file_size
        self.max_files_per_upload = max_files_per_upload

    def validate_extension(self, filename: str) -> str:
        """
        Returns:
            Normalized extension (lowercase with dot).
        Raises:
            ValidationError if the extension is not allowed.
        """
        ext = Path(filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext or filename}' is not supported. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="files",
                context={"filename": filename, "extension": ext},
            )
        return ext

    def detect_mime_type(self, data: bytes, filename: str) -> str:
        """
        Read the real content type from the file header bytes.

        Raises:
            ValidationError if libmagic cannot identify the content.
        """
        try:
            return magic.from_buffer(data[:SNIFF_BYTES], mime=True)
        except magic.MagicException as e:
            logger.error("MIME type detection failed for %s: %s", filename, str(e))
            raise ValidationError(
                message=f"Could not verify the type of '{filename}'. Please try another image.",
                field="files",
                context={"filename": filename},
            )

    def validate_mime_type(self, data: bytes, content_type: Optional[str], filename: str) -> str:
        """
        Resolve the MIME type sent to the vision model.

        Returns:
            The detected (normalized) image type.
        Raises:
            ValidationError if the client declared a non-image type, or the
            bytes are not one of the allowed image formats.
        """
        declared = (content_type or "").split(";")[0].strip().lower()
        if declared not in GENERIC_MIME_TYPES and declared not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message=(
                    f"File content type '{declared}' is not supported. "
                    "The file must be a JPEG, PNG, GIF or BMP image."
                ),
                field="files",
                context={"filename": filename, "declared_mime": declared},
            )

        detected = self.detect_mime_type(data, filename)
        if detected not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message=(
                    f"File '{filename}' is not a supported image "
                    f"(its content looks like '{detected}')."
                ),
                field="files",
                context={"filename": filename, "detected_mime": detected},
            )
        return MIME_ALIASES.get(detected, detected)

    def validate_size(self, data: bytes, filename: str) -> None:
        max_mb = self.max_file_size / (1024 * 1024)
        if not data:
            raise ValidationError(
                message=f"File '{filename}' is empty.",
                field="files",
                context={"filename": filename},
            )
        if len(data) > self.max_file_size:
            raise ValidationError(
                message=(
                    f"File '{filename}' ({len(data) / (1024 * 1024):.1f}MB) is too large. "
                    f"Maximum size is {max_mb:.0f}MB."
                ),
                field="files",
                context={"filename": filename, "actual_size": len(data)},
            )

    def validate_image(self, upload: ImageUpload) -> ValidatedImage:
        self.validate_extension(upload.filename)
        self.validate_size(upload.data, upload.filename)
        mime_type = self.validate_mime_type(upload.data, upload.content_type, upload.filename)
        return ValidatedImage(filename=upload.filename, mime_type=mime_type, data=upload.data)

    def validate_batch(self, uploads: Sequence[ImageUpload]) -> List[ValidatedImage]:
        """
        Validate every upload of one request; any failure rejects the batch.

        Returns:
            ValidatedImage list in input order (empty for empty input).
        """
        if len(uploads) > self.max_files_per_upload:
            raise ValidationError(
                message=(
                    f"Too many files in one upload ({len(uploads)}). "
                    f"Maximum is {self.max_files_per_upload}."
                ),
                field="files",
                context={"count": len(uploads)},
            )
        validated = [self.validate_image(upload) for upload in uploads]
        logger.debug("Validated %d uploaded image(s)", len(validated))
        return validated
