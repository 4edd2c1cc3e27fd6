"""
Tests for the deterministic pixel detection strategies
"""

import numpy as np
import pytest

from core.enums import RegionSource
from core.pixel_buffer import PixelBuffer
from vision.card_detection import CardDetector
from vision.contour_detection import ContourDetector
from vision.edge_components import EdgeComponentDetector, sobel_edge_map
from vision.floodfill_detection import FloodFillDetector
from vision.grid import GridSplitter, split_axis
from vision.section_detection import SectionDetector, find_dividers, section_bounds
from vision.variance_detection import VarianceComponentDetector
from tests.images import blank

DETECTORS = [
    ContourDetector,
    FloodFillDetector,
    CardDetector,
    EdgeComponentDetector,
    VarianceComponentDetector,
    SectionDetector,
    GridSplitter,
]


def boxes_of(result):
    return [region.bounding_box.to_dict() for region in result["regions"]]


class TestContourDetection:
    """Test background-subtraction contour detection"""

    def test_single_rectangle(self, red_rect_buffer):
        """A red rectangle on white yields exactly its own box"""
        result = ContourDetector().detect(red_rect_buffer)

        assert result["success"] is True
        assert boxes_of(result) == [{"x": 50, "y": 50, "width": 100, "height": 60}]
        region = result["regions"][0]
        assert region.source == RegionSource.CONTOUR
        assert region.confidence == pytest.approx(0.95)
        assert region.bounding_box.normalized_x == pytest.approx(50 / 400)

    def test_uniform_image_has_no_regions(self, uniform_buffer):
        """A single-color image is all background"""
        assert ContourDetector().detect(uniform_buffer)["regions"] == []

    def test_min_size_filter(self, red_rect_buffer):
        """Regions smaller than min_size are dropped"""
        result = ContourDetector().detect(red_rect_buffer, {"min_size": 70})
        assert result["regions"] == []

    def test_adjacent_shapes_merge(self):
        """Two blocks 3px apart merge into one region"""
        image = blank(200, 120)
        image[20:60, 20:60] = (0, 0, 0)
        image[20:60, 63:100] = (0, 0, 0)
        result = ContourDetector().detect(PixelBuffer.from_array(image))
        assert boxes_of(result) == [{"x": 20, "y": 20, "width": 80, "height": 40}]


class TestFloodFillDetection:
    """Test flood-fill region detection"""

    def test_single_rectangle(self, red_rect_buffer):
        """The red rectangle is filled exactly"""
        result = FloodFillDetector().detect(red_rect_buffer)
        assert boxes_of(result) == [{"x": 50, "y": 50, "width": 100, "height": 60}]
        assert result["regions"][0].source == RegionSource.FLOODFILL

    def test_near_background_is_skipped(self):
        """Pixels within the tolerance of the background never seed a fill"""
        image = blank(200, 150)
        image[30:90, 30:130] = (245, 245, 245)
        assert FloodFillDetector().detect(PixelBuffer.from_array(image))["regions"] == []

    def test_two_colors(self):
        """Differently colored blocks become separate regions"""
        image = blank(300, 200)
        image[20:80, 20:120] = (200, 0, 0)
        image[120:180, 150:280] = (0, 0, 200)
        result = FloodFillDetector().detect(PixelBuffer.from_array(image))
        assert sorted(b["x"] for b in boxes_of(result)) == [20, 150]


class TestCardDetection:
    """Test solid UI card detection"""

    def test_solid_card_is_padded(self, card_image):
        """A solid card is found and padded by 6px"""
        result = CardDetector().detect(PixelBuffer.from_array(card_image))

        assert boxes_of(result) == [{"x": 34, "y": 34, "width": 162, "height": 112}]
        region = result["regions"][0]
        assert region.source == RegionSource.CARD
        assert region.shape == "card"
        assert "150×100" in region.description

    def test_small_card_filtered(self, card_image):
        """Cards under min_size are dropped"""
        result = CardDetector().detect(PixelBuffer.from_array(card_image), {"min_size": 120})
        assert result["regions"] == []

    def test_bordered_pass_is_opt_in(self):
        """Outlined boxes are only found with include_bordered"""
        image = blank(300, 200)
        image[40, 40:260] = (0, 0, 0)
        image[160, 40:260] = (0, 0, 0)
        image[40:161, 40] = (0, 0, 0)
        image[40:161, 260] = (0, 0, 0)
        buffer = PixelBuffer.from_array(image)

        assert CardDetector().detect(buffer)["regions"] == []
        bordered = CardDetector().detect(buffer, {"include_bordered": True})
        assert len(bordered["regions"]) == 1


class TestEdgeComponents:
    """Test Sobel-edge component detection"""

    def test_rectangle_outline(self, red_rect_buffer):
        """The edges of the rectangle form one component around it"""
        result = EdgeComponentDetector().detect(red_rect_buffer)

        assert len(result["regions"]) == 1
        b = result["regions"][0].bounding_box
        assert abs(b.x - 50) <= 2 and abs(b.y - 50) <= 2
        assert abs(b.width - 100) <= 4 and abs(b.height - 60) <= 4
        assert result["edge_pixels"] > 0

    def test_edge_map_interior_only(self):
        """The one-pixel border of the edge map is always False"""
        gray = np.zeros((10, 10), dtype=np.int16)
        gray[:, 5:] = 255
        edges = sobel_edge_map(gray, 30)
        assert edges[1:-1, 4:6].all()
        assert not edges[0].any() and not edges[-1].any()

    def test_tiny_image_has_no_edges(self):
        """Images under 3px have no interior"""
        assert not sobel_edge_map(np.zeros((2, 2), dtype=np.int16), 1).any()


class TestVarianceComponents:
    """Test local color variance component detection"""

    def test_textured_patch(self, noisy_patch_image):
        """A photo-like noise patch is one padded component"""
        result = VarianceComponentDetector().detect(PixelBuffer.from_array(noisy_patch_image))

        assert len(result["regions"]) == 1
        b = result["regions"][0].bounding_box
        assert b.x <= 100 and b.y <= 100
        assert b.x2 >= 180 and b.y2 >= 160
        assert result["regions"][0].source == RegionSource.VARIANCE

    def test_flat_fill_ignored(self, red_rect_buffer):
        """Flat color has no variance inside, so no large component"""
        result = VarianceComponentDetector().detect(red_rect_buffer, {"min_size": 70})
        assert result["regions"] == []


class TestSectionDetection:
    """Test horizontal section dividers"""

    def test_two_halves(self, two_section_image):
        """A line at row 100 splits the image into two 100px sections"""
        result = SectionDetector().detect(PixelBuffer.from_array(two_section_image))

        assert boxes_of(result) == [
            {"x": 0, "y": 0, "width": 200, "height": 100},
            {"x": 0, "y": 100, "width": 200, "height": 100},
        ]
        assert result["fallback"] is False
        assert [r.description for r in result["regions"]] == ["Section 1", "Section 2"]

    def test_fallback_full_image(self):
        """Without room for sections the whole image is returned"""
        result = SectionDetector().detect(PixelBuffer.from_array(blank(60, 15)))
        assert result["fallback"] is True
        assert boxes_of(result) == [{"x": 0, "y": 0, "width": 60, "height": 15}]
        assert result["regions"][0].suggested_filename == "full-image.png"

    def test_uniform_run_midpoint(self):
        """A long uniform run ending at a busy row puts a divider at its midpoint"""
        uniform = np.array([True] * 10 + [False] * 5)
        colors = np.zeros((15, 3), dtype=np.int32)
        assert find_dividers(uniform, colors) == [5]

    def test_short_color_shift_ignored(self):
        """A color jump after a run of 2 rows is not a divider"""
        uniform = np.array([True] * 6)
        colors = np.array([[0, 0, 0]] * 2 + [[200, 200, 200]] * 4, dtype=np.int32)
        assert find_dividers(uniform, colors) == []

    def test_color_shift_at_transition_row(self):
        """A color jump between uniform runs puts the divider on the first new row"""
        uniform = np.array([True] * 10)
        colors = np.array([[0, 0, 0]] * 6 + [[128, 128, 128]] * 4, dtype=np.int32)
        assert find_dividers(uniform, colors) == [6]

    def test_color_blocks_without_line(self):
        """Two solid halves of different color split exactly at the boundary"""
        image = np.vstack([blank(200, 100, (0, 0, 0)), blank(200, 100, (128, 128, 128))])
        result = SectionDetector().detect(PixelBuffer.from_array(image))
        assert boxes_of(result) == [
            {"x": 0, "y": 0, "width": 200, "height": 100},
            {"x": 0, "y": 100, "width": 200, "height": 100},
        ]

    def test_section_bounds_adds_edges(self):
        """Implicit dividers at 0 and H; thin sections are dropped"""
        assert section_bounds([100], 200, 20) == [(0, 100), (100, 200)]
        assert section_bounds([10, 100], 200, 20) == [(10, 100), (100, 200)]


class TestGrid:
    """Test the grid splitter"""

    def test_split_axis_remainder(self):
        """The last span takes the remainder"""
        assert split_axis(10, 3) == [(0, 3), (3, 3), (6, 4)]

    @pytest.mark.parametrize("rows,columns", [(1, 1), (2, 2), (3, 4), (7, 5)])
    def test_exact_cover(self, rows, columns):
        """rows x columns cells cover the image with no gaps or overlaps"""
        W, H = 301, 203
        result = GridSplitter().detect(
            PixelBuffer.from_array(blank(W, H)), {"rows": rows, "columns": columns}
        )
        boxes = [r.bounding_box for r in result["regions"]]

        assert len(boxes) == rows * columns
        coverage = np.zeros((H, W), dtype=np.int32)
        for b in boxes:
            coverage[b.y : b.y2, b.x : b.x2] += 1
        assert (coverage == 1).all()

    def test_cell_metadata(self):
        """Cells carry row/column, filename and full confidence"""
        result = GridSplitter().detect(PixelBuffer.from_array(blank(100, 100)), {"rows": 2, "columns": 2})
        last = result["regions"][-1]
        assert last.suggested_filename == "grid-1-1.png"
        assert last.properties == {"row": 1, "column": 1}
        assert last.confidence == 1.0

    def test_rows_clamped_to_height(self):
        """Rows are clamped so no cell is shorter than 4px"""
        result = GridSplitter().detect(PixelBuffer.from_array(blank(40, 8)), {"rows": 50, "columns": 1})
        assert result["rows"] == 2
        assert [r.bounding_box.height for r in result["regions"]] == [4, 4]

    def test_tiny_image_keeps_every_cell(self):
        """A 6x6 image asked for 3x3 still yields rows x columns usable cells"""
        result = GridSplitter().detect(PixelBuffer.from_array(blank(6, 6)), {"rows": 3, "columns": 3})
        assert (result["rows"], result["columns"]) == (1, 1)
        assert boxes_of(result) == [{"x": 0, "y": 0, "width": 6, "height": 6}]


class TestStrategyInvariants:
    """Invariants shared by every pixel strategy"""

    @pytest.mark.parametrize("detector_class", DETECTORS)
    def test_idempotent(self, detector_class, screenshot_image):
        """Running twice on the same buffer gives identical boxes"""
        buffer = PixelBuffer.from_array(screenshot_image)
        first = detector_class().detect(buffer)
        second = detector_class().detect(buffer)
        assert boxes_of(first) == boxes_of(second)

    @pytest.mark.parametrize("detector_class", DETECTORS)
    def test_containment_and_minimum_size(self, detector_class, screenshot_image):
        """Every box lies inside the image and is at least 4px per axis"""
        buffer = PixelBuffer.from_array(screenshot_image)
        for region in detector_class().detect(buffer)["regions"]:
            b = region.bounding_box
            assert 0 <= b.x and 0 <= b.y
            assert b.x2 <= buffer.width and b.y2 <= buffer.height
            assert b.width >= 4 and b.height >= 4
            assert 0.0 <= region.confidence <= 1.0

    @pytest.mark.parametrize("detector_class", DETECTORS)
    def test_uniform_image_is_safe(self, detector_class, uniform_buffer):
        """A single-color image never raises"""
        result = detector_class().detect(uniform_buffer)
        assert result["success"] is True

    @pytest.mark.parametrize("detector_class", DETECTORS)
    def test_one_pixel_image(self, detector_class, tiny_buffer):
        """A 1x1 image yields no regions and never raises"""
        result = detector_class().detect(tiny_buffer)
        assert result["success"] is True
        assert result["regions"] == []
