"""
API Integration Tests for Extraction Endpoints
"""

import base64
import json

from config import ExtractionConfig
from core.constants import ErrorMessages
from core.enums import ExtractionMode
from tests.images import encode_png

EXTRACT = "/api/extraction/extract"
DETECT = "/api/extraction/detect"


class TestExtractAPI:
    """Integration tests for /extract"""

    def test_extract_contour(self, client, red_rect_b64):
        """Test contour extraction of the red rectangle"""
        response = client.post(EXTRACT, json={"image_base64": red_rect_b64, "mode": "contour"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["mode"] == "contour"
        assert data["total_found"] == 1
        assert data["processing_time_ms"] > 0

        image = data["images"][0]
        assert "image_data" not in image
        assert image["width"] == 104 and image["height"] == 64
        assert image["source"] == "contour"
        assert image["suggested_filename"] == "region-1-image.png"
        assert base64.b64decode(image["base64_data"]).startswith(b"\x89PNG")

    def test_default_mode_is_contour(self, client, red_rect_b64):
        """Test that contour is the default mode"""
        response = client.post(EXTRACT, json={"image_base64": red_rect_b64})
        assert response.json()["mode"] == "contour"

    def test_data_url_accepted(self, client, red_rect_b64):
        """Test image payload with a data URL prefix"""
        payload = "data:image/png;base64," + red_rect_b64
        response = client.post(EXTRACT, json={"image_base64": payload, "mode": "floodfill"})
        assert response.json()["total_found"] == 1

    def test_with_parameters(self, client, red_rect_b64):
        """Test extraction with mode parameters"""
        response = client.post(
            EXTRACT,
            json={"image_base64": red_rect_b64, "mode": "grid", "parameters": {"rows": 3, "columns": 3}},
        )
        assert response.json()["total_found"] == 9

    def test_invalid_base64(self, client):
        """A payload that is not base64 is a 400"""
        response = client.post(EXTRACT, json={"image_base64": "abc"})

        assert response.status_code == 400
        assert response.json()["error_code"] == "image_decode_failed"

    def test_not_an_image(self, client):
        """Valid base64 of non-image bytes is reported in the result"""
        payload = base64.b64encode(b"hello world, not an image").decode()
        response = client.post(EXTRACT, json={"image_base64": payload})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["error"] == ErrorMessages.DECODE_FAILED

    def test_image_too_large(self, app, client, red_rect_b64):
        """Test rejection of images above max_image_mb"""
        app.state.extraction_settings = ExtractionConfig(max_image_mb=0.0001)
        response = client.post(EXTRACT, json={"image_base64": red_rect_b64})
        assert response.status_code == 413

    def test_unknown_mode(self, client, red_rect_b64):
        """Test extraction with unknown mode"""
        response = client.post(EXTRACT, json={"image_base64": red_rect_b64, "mode": "telepathy"})
        assert response.status_code == 422

    def test_invalid_parameters(self, client, red_rect_b64):
        """Test extraction with out-of-range parameters"""
        response = client.post(
            EXTRACT,
            json={"image_base64": red_rect_b64, "mode": "grid", "parameters": {"rows": 0}},
        )

        assert response.status_code == 422
        assert response.json()["error_code"] == "invalid_parameters"

    def test_non_image_mime_type(self, client, red_rect_b64):
        """Test extraction with a non-image MIME type"""
        response = client.post(EXTRACT, json={"image_base64": red_rect_b64, "mime_type": "text/plain"})
        assert response.status_code == 422

    def test_missing_image(self, client):
        """Test extraction without an image"""
        response = client.post(EXTRACT, json={"mode": "contour"})
        assert response.status_code == 422

    def test_ai_mode_without_provider(self, client, red_rect_b64):
        """Test AI mode when no provider is configured"""
        response = client.post(EXTRACT, json={"image_base64": red_rect_b64, "mode": "ai_regions"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["error"] == ErrorMessages.ORACLE_NOT_CONFIGURED

    def test_cloud_mode_without_analyzer(self, client, red_rect_b64):
        """Test cloud mode without an analyzer reports in the body, not as 503"""
        response = client.post(EXTRACT, json={"image_base64": red_rect_b64, "mode": "cloud_vision"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["error"] == ErrorMessages.CLOUD_NOT_CONFIGURED

    def test_ai_mode_with_provider(self, oracle_client, red_rect_b64):
        """Test AI mode with a mocked provider"""
        response = oracle_client.post(EXTRACT, json={"image_base64": red_rect_b64, "mode": "ai_regions"})

        data = response.json()
        assert data["success"] is True
        assert data["images"][0]["suggested_filename"] == "element-1.png"

    def test_hybrid_with_providers(self, oracle_client, red_rect_b64):
        """Test hybrid mode with both providers mocked"""
        response = oracle_client.post(EXTRACT, json={"image_base64": red_rect_b64, "mode": "hybrid"})

        data = response.json()
        assert data["total_found"] == 1
        assert data["images"][0]["source"] == "cloud"


class TestExtractUploadAPI:
    """Integration tests for /extract-upload"""

    def test_upload(self, client, red_rect_png):
        """Test multipart upload extraction"""
        response = client.post(
            "/api/extraction/extract-upload",
            files={"file": ("rect.png", red_rect_png, "image/png")},
            data={"mode": "floodfill", "parameters": json.dumps({"min_size": 10})},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["mode"] == "floodfill"
        assert data["total_found"] == 1

    def test_upload_bad_parameters(self, client, red_rect_png):
        """Test upload with malformed parameters JSON"""
        response = client.post(
            "/api/extraction/extract-upload",
            files={"file": ("rect.png", red_rect_png, "image/png")},
            data={"parameters": "{not json"},
        )
        assert response.status_code == 422

    def test_upload_parameters_not_object(self, client, red_rect_png):
        """Test upload with parameters that are not an object"""
        response = client.post(
            "/api/extraction/extract-upload",
            files={"file": ("rect.png", red_rect_png, "image/png")},
            data={"parameters": "[1, 2]"},
        )
        assert response.status_code == 422

    def test_upload_empty_file(self, client):
        """Test upload of an empty file"""
        response = client.post(
            "/api/extraction/extract-upload",
            files={"file": ("empty.png", b"", "image/png")},
        )
        assert response.status_code == 400


class TestDetectAPI:
    """Integration tests for /detect"""

    def test_detect(self, client, red_rect_b64):
        """Test detection without crops"""
        response = client.post(DETECT, json={"image_base64": red_rect_b64, "mode": "contour"})

        assert response.status_code == 200
        data = response.json()
        assert data["total_found"] == 1
        assert data["image_width"] == 400
        assert data["image_height"] == 300
        region = data["regions"][0]
        assert region["bounding_box"]["x"] == 50
        assert region["source"] == "contour"
        assert "images" not in data

    def test_detect_sections(self, client, two_section_image):
        """Test section detection over HTTP"""
        payload = base64.b64encode(encode_png(two_section_image)).decode()
        response = client.post(DETECT, json={"image_base64": payload, "mode": "sections"})
        assert [r["bounding_box"]["y"] for r in response.json()["regions"]] == [0, 100]


class TestRefineAndCropAPI:
    """Integration tests for /refine and /crop"""

    def test_refine(self, client, red_rect_b64):
        """Test bounding box refinement"""
        response = client.post(
            "/api/extraction/refine",
            json={
                "image_base64": red_rect_b64,
                "bounding_box": {"x": 45, "y": 45, "width": 110, "height": 70},
            },
        )

        assert response.status_code == 200
        box = response.json()
        assert (box["x"], box["y"], box["width"], box["height"]) == (49, 49, 101, 61)

    def test_refine_threshold_out_of_range(self, client, red_rect_b64):
        """Test refinement with invalid threshold"""
        response = client.post(
            "/api/extraction/refine",
            json={
                "image_base64": red_rect_b64,
                "bounding_box": {"x": 45, "y": 45, "width": 110, "height": 70},
                "threshold": 0,
            },
        )
        assert response.status_code == 422

    def test_crop(self, client, red_rect_b64):
        """Test exact crop without padding"""
        response = client.post(
            "/api/extraction/crop",
            json={
                "image_base64": red_rect_b64,
                "bounding_box": {"x": 50, "y": 50, "width": 100, "height": 60},
                "padding": 0,
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert (data["width"], data["height"]) == (100, 60)
        assert data["bounding_box"]["x"] == 50

    def test_crop_too_small(self, client, red_rect_b64):
        """Test crop of a box below the minimum size"""
        response = client.post(
            "/api/extraction/crop",
            json={
                "image_base64": red_rect_b64,
                "bounding_box": {"x": 10, "y": 10, "width": 2, "height": 2},
                "padding": 0,
            },
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "region_too_small"

    def test_crop_undecodable_image(self, client):
        """Test crop of bytes that are not an image"""
        payload = base64.b64encode(b"plain text").decode()
        response = client.post(
            "/api/extraction/crop",
            json={"image_base64": payload, "bounding_box": {"x": 0, "y": 0, "width": 10, "height": 10}},
        )
        assert response.status_code == 400


class TestModesAPI:
    """Integration tests for /modes"""

    def test_lists_every_mode(self, client):
        """Test listing of all modes with defaults"""
        response = client.get("/api/extraction/modes")

        assert response.status_code == 200
        modes = {m["mode"]: m for m in response.json()}
        assert set(modes) == {mode.value for mode in ExtractionMode}
        assert modes["contour"]["parameters"]["min_size"] == 20
        assert modes["grid"]["requires"] is None

    def test_availability_without_providers(self, client):
        """Test mode availability without providers"""
        modes = {m["mode"]: m for m in client.get("/api/extraction/modes").json()}

        assert modes["contour"]["available"] is True
        assert modes["hybrid"]["available"] is True
        assert modes["ai_regions"]["available"] is False
        assert modes["people"]["requires"] == "cloud"
        assert modes["people"]["available"] is False

    def test_availability_with_providers(self, oracle_client):
        """Test mode availability with providers"""
        modes = {m["mode"]: m for m in oracle_client.get("/api/extraction/modes").json()}
        assert all(m["available"] for m in modes.values())
