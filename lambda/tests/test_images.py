"""
Unit tests for images module (uploads, annotated images, serving)
"""
import base64
import io
from unittest.mock import patch

import pytest
from PIL import Image

from claims_review.images import (
    content_type_for,
    is_safe_filename,
    read_uploaded_image,
    sanitize_filename,
    save_annotated_image,
    save_uploaded_image,
)
from claims_review.models import (
    ImageNotFoundError,
    ImageStorageError,
    InvalidFilenameError,
    InvalidImageError,
)

from conftest import image_base64


def _stored_path(image_root, image_url):
    return image_root / image_url[len("/images/"):]


# ============================================================================
# UPLOADS
# ============================================================================

class TestSaveUploadedImage:

    def test_stores_under_uploads(self, image_root):
        result = save_uploaded_image("CLM-001", image_base64("JPEG"), "photo.jpg", image_root=image_root)

        assert result.image_url.startswith("/images/uploads/CLM-001_")
        assert result.image_url.endswith(".jpg")
        assert _stored_path(image_root, result.image_url).exists()

    def test_data_url_prefix_is_stripped(self, image_root):
        data = "data:image/png;base64," + image_base64("PNG")
        result = save_uploaded_image("CLM-001", data, "shot.png", image_root=image_root)

        stored = _stored_path(image_root, result.image_url).read_bytes()
        assert stored == base64.b64decode(image_base64("PNG"))

    def test_default_extension_is_jpg(self, image_root):
        result = save_uploaded_image("CLM-001", image_base64("JPEG"), image_root=image_root)
        assert result.image_url.endswith(".jpg")

    def test_unservable_extension_uses_detected_format(self, image_root):
        result = save_uploaded_image("CLM-001", image_base64("PNG"), "scan.exe", image_root=image_root)
        assert result.image_url.endswith(".png")

    def test_mislabelled_extension_uses_detected_format(self, image_root):
        # JPEG bytes sent as a .png file
        result = save_uploaded_image("CLM-001", image_base64("JPEG"), "shot.png", image_root=image_root)
        filename = result.image_url.rsplit("/", 1)[-1]

        assert filename.endswith(".jpg")
        content, content_type = read_uploaded_image(filename, image_root=image_root)
        assert content_type == "image/jpeg"
        assert content.startswith(b"\xff\xd8\xff")

    def test_jpeg_extension_kept_for_jpeg(self, image_root):
        result = save_uploaded_image("CLM-001", image_base64("JPEG"), "shot.jpeg", image_root=image_root)
        assert result.image_url.endswith(".jpeg")

    def test_claim_id_is_sanitized(self, image_root):
        result = save_uploaded_image("../CLM 1", image_base64("PNG"), image_root=image_root)
        assert "/uploads/.._CLM_1_" in result.image_url
        assert _stored_path(image_root, result.image_url).parent == image_root / "uploads"

    def test_uses_configured_root(self, image_root):
        with patch("claims_review.images.IMAGE_ROOT", str(image_root)):
            result = save_uploaded_image("CLM-001", image_base64("PNG"), "a.png")
        assert _stored_path(image_root, result.image_url).exists()

    @pytest.mark.parametrize("data", [None, "", 42])
    def test_missing_data_rejected(self, image_root, data):
        with pytest.raises(InvalidImageError):
            save_uploaded_image("CLM-001", data, image_root=image_root)

    def test_invalid_base64(self, image_root):
        with pytest.raises(ImageStorageError, match="base64"):
            save_uploaded_image("CLM-001", "not*base64!", image_root=image_root)

    def test_not_an_image(self, image_root):
        data = base64.b64encode(b"plain text, not pixels").decode()
        with pytest.raises(ImageStorageError, match="corrupted"):
            save_uploaded_image("CLM-001", data, image_root=image_root)
        assert not (image_root / "uploads").exists()

    def test_unsupported_format(self, image_root):
        with pytest.raises(InvalidImageError, match="Unsupported format"):
            save_uploaded_image("CLM-001", image_base64("BMP"), image_root=image_root)

    def test_oversized_image(self, image_root):
        with patch("claims_review.images.MAX_IMAGE_SIZE_MB", 0.00001):
            with pytest.raises(InvalidImageError, match="too large"):
                save_uploaded_image("CLM-001", image_base64("PNG", size=(200, 200)), image_root=image_root)

    def test_write_failure(self, image_root):
        # A file where the uploads directory should be
        (image_root / "uploads").write_text("")
        with pytest.raises(ImageStorageError, match="Failed to write"):
            save_uploaded_image("CLM-001", image_base64("PNG"), image_root=image_root)


# ============================================================================
# ANNOTATED IMAGES
# ============================================================================

class TestSaveAnnotatedImage:

    def test_stores_under_annotated_dir(self, image_root):
        data_url = "data:image/png;base64," + image_base64("PNG")
        result = save_annotated_image("CLM-002", data_url, image_root=image_root)

        assert result.image_url.startswith("/images/annotated/edited_by_claims_agent/CLM-002_annotated_")
        assert result.image_url.endswith(".png")

        stored = _stored_path(image_root, result.image_url)
        assert Image.open(io.BytesIO(stored.read_bytes())).format == "PNG"

    def test_extension_follows_content(self, image_root):
        # Declared as png, actually JPEG
        data_url = "data:image/png;base64," + image_base64("JPEG")
        result = save_annotated_image("CLM-002", data_url, image_root=image_root)
        assert result.image_url.endswith(".jpg")

    @pytest.mark.parametrize("data_url", [None, "", image_base64("PNG"), "data:text/plain;base64,aGk="])
    def test_requires_image_data_url(self, image_root, data_url):
        with pytest.raises(InvalidImageError):
            save_annotated_image("CLM-002", data_url, image_root=image_root)

    def test_corrupt_payload(self, image_root):
        with pytest.raises(ImageStorageError):
            save_annotated_image("CLM-002", "data:image/png;base64,AAAA", image_root=image_root)


# ============================================================================
# SERVING
# ============================================================================

class TestReadUploadedImage:

    def test_reads_back_upload(self, image_root):
        result = save_uploaded_image("CLM-001", image_base64("PNG"), "a.png", image_root=image_root)
        filename = result.image_url.rsplit("/", 1)[-1]

        content, content_type = read_uploaded_image(filename, image_root=image_root)

        assert content_type == "image/png"
        assert content == base64.b64decode(image_base64("PNG"))

    @pytest.mark.parametrize("filename", ["", "..", ".", "../claims-state.json", "a/b.jpg", "a b.jpg"])
    def test_unsafe_names_rejected(self, image_root, filename):
        with pytest.raises(InvalidFilenameError):
            read_uploaded_image(filename, image_root=image_root)

    def test_missing_file(self, image_root):
        with pytest.raises(ImageNotFoundError):
            read_uploaded_image("CLM-001_1.jpg", image_root=image_root)


class TestFilenameHelpers:

    @pytest.mark.parametrize("name,expected", [
        ("photo.jpg", True),
        ("CLM-001_1700000000000.png", True),
        ("..", False),
        ("../x.jpg", False),
        ("x%2F.jpg", False),
        (None, False),
    ])
    def test_is_safe_filename(self, name, expected):
        assert is_safe_filename(name) is expected

    def test_sanitize_filename(self):
        assert sanitize_filename("my photo (1).JPG") == "my_photo__1_.JPG"

    @pytest.mark.parametrize("name,expected", [
        ("a.PNG", "image/png"),
        ("a.webp", "image/webp"),
        ("a.gif", "image/gif"),
        ("a.jpeg", "image/jpeg"),
        ("noext", "image/jpeg"),
        ("a.tiff", "image/jpeg"),
    ])
    def test_content_type_for(self, name, expected):
        assert content_type_for(name) == expected
