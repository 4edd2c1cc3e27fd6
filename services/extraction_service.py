"""
Extraction Service - Orchestrates region detection and cropping.

Each extraction mode runs one detection source (a pixel strategy, the
vision-completion oracle or the cloud analyzer) or, in hybrid mode, all of
them at once. The regions it yields are cropped to PNG images.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, Type, Union

from api.exceptions import ImageDecodeException, InvalidParametersException
from config import ExtractionConfig
from core.constants import AIDefaults, ErrorMessages, ImageConstants, RefineDefaults
from core.cropper import RegionCropper
from core.enums import AIExtractionType, ComponentMethod, ExtractionMode, RegionSource
from core.pixel_buffer import PixelBuffer
from core.utils.decorators import timer
from core.utils.params_processor import prepare_params
from schemas import (
    BaseDetectionParams,
    BoundingBox,
    CropResult,
    DetectedRegion,
    DetectionResult,
    ExtractedImage,
    ExtractionResult,
)
from services.providers import CloudAnalysis, CloudVisionAnalyzer, VisionCompletionProvider
from vision.ai_regions import (
    SYSTEM_PROMPT,
    AIRegionParams,
    AIRegionParser,
    SmartDetectParams,
    build_extraction_prompt,
)
from vision.boundary_refiner import BoundaryRefiner
from vision.card_detection import CardDetector, CardParams
from vision.cloud_regions import CloudRegionParams, cloud_to_detected
from vision.contour_detection import ContourDetector, ContourParams
from vision.edge_components import ComponentParams, EdgeComponentDetector
from vision.floodfill_detection import FloodFillDetector, FloodFillParams
from vision.grid import GridParams, GridSplitter
from vision.reconciler import HybridParams, RegionReconciler
from vision.section_detection import SectionDetector, SectionParams
from vision.variance_detection import VarianceComponentDetector

logger = logging.getLogger(__name__)


# Parameter model validated for each mode
MODE_PARAMS: Dict[ExtractionMode, Type[BaseDetectionParams]] = {
    ExtractionMode.GRID: GridParams,
    ExtractionMode.SECTIONS: SectionParams,
    ExtractionMode.COMPONENTS: ComponentParams,
    ExtractionMode.CONTOUR: ContourParams,
    ExtractionMode.FLOODFILL: FloodFillParams,
    ExtractionMode.UI_CARDS: CardParams,
    ExtractionMode.AI_REGIONS: AIRegionParams,
    ExtractionMode.SMART_DETECT: SmartDetectParams,
    ExtractionMode.ICONS: BaseDetectionParams,
    ExtractionMode.LOGOS: BaseDetectionParams,
    ExtractionMode.CLOUD_VISION: CloudRegionParams,
    ExtractionMode.PEOPLE: CloudRegionParams,
    ExtractionMode.HYBRID: HybridParams,
}

MODE_DESCRIPTIONS: Dict[ExtractionMode, str] = {
    ExtractionMode.GRID: "Split the image into equal rows and columns",
    ExtractionMode.SECTIONS: "Full-width sections between uniform divider rows",
    ExtractionMode.COMPONENTS: "UI components found from edges or local color variance",
    ExtractionMode.CONTOUR: "Foreground regions that differ from the background",
    ExtractionMode.FLOODFILL: "Solid color regions grown from seed pixels",
    ExtractionMode.UI_CARDS: "Solid-fill (and optionally bordered) UI cards",
    ExtractionMode.AI_REGIONS: "Images and graphics located by the vision-completion oracle",
    ExtractionMode.SMART_DETECT: "Oracle regions snapped to nearby edges",
    ExtractionMode.ICONS: "Icons located by the vision-completion oracle",
    ExtractionMode.LOGOS: "Logos and brand marks located by the vision-completion oracle",
    ExtractionMode.CLOUD_VISION: "Objects and captions from the cloud analyzer",
    ExtractionMode.PEOPLE: "People located by the cloud analyzer",
    ExtractionMode.HYBRID: "Oracles and pixel strategies fused without overlaps",
}

# Which external collaborator a mode needs ("oracle", "cloud" or None)
MODE_REQUIREMENTS: Dict[ExtractionMode, Optional[str]] = {
    ExtractionMode.AI_REGIONS: "oracle",
    ExtractionMode.SMART_DETECT: "oracle",
    ExtractionMode.ICONS: "oracle",
    ExtractionMode.LOGOS: "oracle",
    ExtractionMode.CLOUD_VISION: "cloud",
    ExtractionMode.PEOPLE: "cloud",
}

PIXEL_SUMMARIES: Dict[ExtractionMode, Tuple[str, str]] = {
    ExtractionMode.CONTOUR: (
        "Detected {n} regions via pixel-perfect contour detection",
        "region-{i}-{shape}.png",
    ),
    ExtractionMode.FLOODFILL: ("Detected {n} regions via flood-fill analysis", "region-{i}-{shape}.png"),
    ExtractionMode.UI_CARDS: ("Detected {n} UI cards/widgets", "card-{i}-{shape}.png"),
    ExtractionMode.COMPONENTS: (
        "Detected {n} UI components via edge detection",
        "component-{i}-{shape}.png",
    ),
    ExtractionMode.SECTIONS: ("Detected {n} sections", "section-{i}.png"),
}


@dataclass
class SourceImage:
    """The decoded request image plus what the oracles need to see it."""

    buffer: PixelBuffer
    image_bytes: bytes
    mime_type: str
    parameters: Mapping[str, Any] = field(default_factory=dict)

    @property
    def width(self) -> int:
        return self.buffer.width

    @property
    def height(self) -> int:
        return self.buffer.height


@dataclass
class ModeOutput:
    """
    Regions of one mode plus how to present them.

    ``summary`` is formatted with ``n``, the number of images produced.
    ``filename_template`` and ``description_template`` are formatted per
    region with ``i`` (1-based, successful crops only), ``shape``, ``desc``
    and ``source``.
    """

    regions: List[DetectedRegion] = field(default_factory=list)
    summary: str = "Extracted {n} regions"
    filename_template: str = "region-{i}.png"
    description_template: Optional[str] = None
    keep_suggested_filename: bool = False
    success: bool = True
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> "ModeOutput":
        return cls(success=False, error=error)

    def filename(self, region: DetectedRegion, index: int) -> str:
        if self.keep_suggested_filename and region.suggested_filename:
            return region.suggested_filename
        return self.filename_template.format(i=index, shape=region.shape)

    def describe(self, region: DetectedRegion, index: int) -> str:
        desc = region.description or f"Region {index}"
        if self.description_template is None:
            return desc
        return self.description_template.format(
            i=index, shape=region.shape, desc=desc, source=region.source.value
        )


def parse_mode(mode: Union[ExtractionMode, str]) -> ExtractionMode:
    """Parse a mode name, raising InvalidParametersException for unknown ones."""
    try:
        return ExtractionMode(mode)
    except ValueError:
        valid = ", ".join(m.value for m in ExtractionMode)
        raise InvalidParametersException(f"Unknown extraction mode '{mode}'. Valid modes: {valid}")


class ExtractionService:
    """
    Service for region extraction.

    The vision-completion provider and the cloud analyzer are optional.
    Modes that need a missing collaborator report ``success=False``; hybrid
    mode simply runs without it.
    """

    def __init__(
        self,
        completion_provider: Optional[VisionCompletionProvider] = None,
        cloud_analyzer: Optional[CloudVisionAnalyzer] = None,
        settings: Optional[ExtractionConfig] = None,
    ):
        """
        Initialize extraction service.

        Args:
            completion_provider: Vision-completion oracle (None disables AI modes)
            cloud_analyzer: Cloud vision analyzer (None disables cloud modes)
            settings: Extraction settings section
        """
        self.completion_provider = completion_provider
        self.cloud_analyzer = cloud_analyzer
        self.settings = settings or ExtractionConfig()

        self.cropper = RegionCropper(padding=self.settings.crop_padding)
        self.refiner = BoundaryRefiner()
        self.reconciler = RegionReconciler(threshold=self.settings.reconcile_threshold)
        self.ai_parser = AIRegionParser()

        self.contour_detector = ContourDetector()
        self.floodfill_detector = FloodFillDetector()
        self.card_detector = CardDetector()
        self.edge_detector = EdgeComponentDetector()
        self.variance_detector = VarianceComponentDetector()
        self.section_detector = SectionDetector()
        self.grid_splitter = GridSplitter()

        self._handlers: Dict[
            ExtractionMode, Callable[[SourceImage, Any], Awaitable[ModeOutput]]
        ] = {
            ExtractionMode.GRID: self._run_grid,
            ExtractionMode.AI_REGIONS: self._run_ai_regions,
            ExtractionMode.SMART_DETECT: self._run_smart_detect,
            ExtractionMode.ICONS: self._run_icons,
            ExtractionMode.LOGOS: self._run_logos,
            ExtractionMode.CLOUD_VISION: self._run_cloud_vision,
            ExtractionMode.PEOPLE: self._run_people,
            ExtractionMode.HYBRID: self._run_hybrid,
        }
        for mode in PIXEL_SUMMARIES:
            self._handlers[mode] = functools.partial(self._run_pixel_mode, mode)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def detect(
        self,
        image_bytes: bytes,
        mime_type: str = ImageConstants.DEFAULT_MIME_TYPE,
        mode: Union[ExtractionMode, str] = ExtractionMode.CONTOUR,
        parameters: Optional[Mapping[str, Any]] = None,
    ) -> DetectionResult:
        """
        Run a mode's detection without cropping.

        Args:
            image_bytes: Encoded source image
            mime_type: MIME type forwarded to the oracle
            mode: Extraction mode
            parameters: Raw mode parameters

        Returns:
            DetectionResult; a decode failure gives ``success=False``

        Raises:
            InvalidParametersException: Unknown mode or invalid parameters
        """
        mode = parse_mode(mode)

        with timer() as t:
            source, output = await self._analyze(image_bytes, mime_type, mode, parameters)

        processing_time_ms = t["ms"]
        n = len(output.regions)
        logger.info(f"Detection mode {mode.value} found {n} regions in {processing_time_ms}ms")

        return DetectionResult(
            success=output.success,
            mode=mode.value,
            regions=output.regions,
            total_found=n,
            summary=self._summary(output, n, n),
            error=output.error,
            image_width=source.width if source else 0,
            image_height=source.height if source else 0,
            processing_time_ms=processing_time_ms,
        )

    async def extract(
        self,
        image_bytes: bytes,
        mime_type: str = ImageConstants.DEFAULT_MIME_TYPE,
        mode: Union[ExtractionMode, str] = ExtractionMode.CONTOUR,
        parameters: Optional[Mapping[str, Any]] = None,
    ) -> ExtractionResult:
        """
        Run a mode and crop every region it yields.

        Regions whose crop fails are logged and skipped; ``total_found`` is
        the number of images actually produced.

        Args:
            image_bytes: Encoded source image
            mime_type: MIME type forwarded to the oracle
            mode: Extraction mode
            parameters: Raw mode parameters

        Returns:
            ExtractionResult; a decode failure gives ``success=False``

        Raises:
            InvalidParametersException: Unknown mode or invalid parameters
        """
        mode = parse_mode(mode)

        with timer() as t:
            source, output = await self._analyze(image_bytes, mime_type, mode, parameters)
            images = self._crop_regions(source, output) if source and output.success else []

        processing_time_ms = t["ms"]
        logger.info(
            f"Extraction mode {mode.value} produced {len(images)} images from "
            f"{len(output.regions)} regions in {processing_time_ms}ms"
        )

        return ExtractionResult(
            success=output.success,
            mode=mode.value,
            images=images,
            total_found=len(images),
            summary=self._summary(output, len(output.regions), len(images)),
            error=output.error,
            processing_time_ms=processing_time_ms,
        )

    def refine_bounds(
        self, image_bytes: bytes, box: BoundingBox, threshold: Optional[int] = None
    ) -> BoundingBox:
        """
        Snap one box to nearby edges.

        Raises:
            ImageDecodeException: If the image cannot be decoded
        """
        buffer = PixelBuffer.from_bytes(image_bytes)
        if threshold is None:
            threshold = self.settings.refine_threshold
        return self.refiner.refine(buffer, box, threshold)

    def crop_region(
        self, image_bytes: bytes, box: BoundingBox, padding: Optional[int] = None
    ) -> CropResult:
        """
        Crop one box exactly as the extraction pipeline would.

        Raises:
            ImageDecodeException: If the image cannot be decoded
        """
        buffer = PixelBuffer.from_bytes(image_bytes)
        return self.cropper.crop(buffer, box, padding)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _analyze(
        self,
        image_bytes: bytes,
        mime_type: str,
        mode: ExtractionMode,
        parameters: Optional[Mapping[str, Any]],
    ) -> Tuple[Optional[SourceImage], ModeOutput]:
        """Validate parameters, decode the image and run the mode handler."""
        params = prepare_params(parameters, MODE_PARAMS[mode])

        try:
            buffer = PixelBuffer.from_bytes(image_bytes)
        except ImageDecodeException as e:
            logger.warning(f"Cannot run {mode.value}: {e.detail}")
            return None, ModeOutput.failed(ErrorMessages.DECODE_FAILED)

        source = SourceImage(
            buffer=buffer,
            image_bytes=image_bytes,
            mime_type=mime_type or ImageConstants.DEFAULT_MIME_TYPE,
            parameters=dict(parameters or {}),
        )
        logger.debug(f"Running {mode.value} on {buffer.width}x{buffer.height} image")
        output = await self._handlers[mode](source, params)
        return source, output

    def _crop_regions(self, source: SourceImage, output: ModeOutput) -> List[ExtractedImage]:
        images = []
        for region in output.regions:
            crop = self.cropper.crop(source.buffer, region.bounding_box)
            if not crop.success:
                logger.warning(
                    f"Skipping {region.source.value} region {region.bounding_box.to_dict()}: {crop.error}"
                )
                continue

            index = len(images) + 1
            images.append(
                ExtractedImage(
                    image_data=crop.image_data,
                    base64_data=crop.base64_data,
                    description=output.describe(region, index),
                    image_type=region.shape,
                    source=region.source,
                    bounding_box=region.bounding_box,
                    suggested_filename=output.filename(region, index),
                    confidence=region.confidence,
                    width=crop.width,
                    height=crop.height,
                )
            )
        return images

    @staticmethod
    def _summary(output: ModeOutput, regions_found: int, produced: int) -> Optional[str]:
        if not output.success:
            return None
        if regions_found == 0:
            return ErrorMessages.NO_REGIONS
        if produced == 0:
            return ErrorMessages.NO_CROPS
        return output.summary.format(n=produced)

    # ------------------------------------------------------------------
    # Pixel strategies
    # ------------------------------------------------------------------

    def _detect_pixels(
        self, mode: ExtractionMode, buffer: PixelBuffer, params: BaseDetectionParams
    ) -> Dict[str, Any]:
        """Run one pixel strategy synchronously and return its result dict."""
        options = params.to_dict()
        if mode == ExtractionMode.CONTOUR:
            return self.contour_detector.detect(buffer, options)
        if mode == ExtractionMode.FLOODFILL:
            return self.floodfill_detector.detect(buffer, options)
        if mode == ExtractionMode.UI_CARDS:
            return self.card_detector.detect(buffer, options)
        if mode == ExtractionMode.COMPONENTS:
            if options.get("method") == ComponentMethod.VARIANCE.value:
                return self.variance_detector.detect(buffer, options)
            return self.edge_detector.detect(buffer, options)
        if mode == ExtractionMode.SECTIONS:
            return self.section_detector.detect(buffer, options)
        if mode == ExtractionMode.GRID:
            return self.grid_splitter.detect(buffer, options)
        raise ValueError(f"{mode.value} is not a pixel strategy")

    async def _run_pixel_mode(
        self, mode: ExtractionMode, source: SourceImage, params: BaseDetectionParams
    ) -> ModeOutput:
        result = await asyncio.to_thread(self._detect_pixels, mode, source.buffer, params)
        summary, filename = PIXEL_SUMMARIES[mode]
        return ModeOutput(
            regions=result["regions"],
            summary=summary,
            filename_template=filename,
            keep_suggested_filename=mode == ExtractionMode.SECTIONS,
        )

    async def _run_grid(self, source: SourceImage, params: GridParams) -> ModeOutput:
        result = await asyncio.to_thread(
            self._detect_pixels, ExtractionMode.GRID, source.buffer, params
        )
        return ModeOutput(
            regions=result["regions"],
            summary=f"Extracted {result['rows']}×{result['columns']} grid ({{n}} cells)",
            filename_template="grid-{i}.png",
            keep_suggested_filename=True,
        )

    # ------------------------------------------------------------------
    # Vision-completion oracle
    # ------------------------------------------------------------------

    async def _query_oracle(
        self, source: SourceImage, extraction_type: AIExtractionType
    ) -> List[DetectedRegion]:
        """
        Ask the oracle for regions and parse its reply.

        Raises:
            Whatever the provider raises on transport or auth failures
        """
        prompt = build_extraction_prompt(source.width, source.height, extraction_type)
        reply = await self.completion_provider.complete(
            source.image_bytes, source.mime_type, prompt, SYSTEM_PROMPT
        )
        return self.ai_parser.parse(reply, source.width, source.height)

    async def _oracle_output(
        self,
        source: SourceImage,
        extraction_type: AIExtractionType,
        summary: str,
        refine_threshold: Optional[int] = None,
    ) -> ModeOutput:
        if self.completion_provider is None:
            return ModeOutput.failed(ErrorMessages.ORACLE_NOT_CONFIGURED)

        try:
            regions = await self._query_oracle(source, extraction_type)
        except Exception as e:
            logger.error(f"AI region extraction failed: {e}", exc_info=True)
            return ModeOutput.failed(f"AI extraction failed: {e}")

        if refine_threshold is not None and regions:
            regions = await asyncio.to_thread(
                self.refiner.refine_all, source.buffer, regions, refine_threshold
            )

        return ModeOutput(
            regions=regions,
            summary=summary,
            filename_template=AIDefaults.FILENAME,
            keep_suggested_filename=True,
        )

    async def _run_ai_regions(self, source: SourceImage, params: AIRegionParams) -> ModeOutput:
        return await self._oracle_output(
            source, params.extraction_type, "Successfully extracted {n} images/graphics"
        )

    async def _run_smart_detect(self, source: SourceImage, params: SmartDetectParams) -> ModeOutput:
        return await self._oracle_output(
            source,
            AIExtractionType.ALL,
            "Extracted {n} images with edge-refined bounds",
            refine_threshold=params.refine_threshold if params.refine else None,
        )

    async def _run_icons(self, source: SourceImage, params: BaseDetectionParams) -> ModeOutput:
        return await self._oracle_output(source, AIExtractionType.ICONS, "Extracted {n} icons")

    async def _run_logos(self, source: SourceImage, params: BaseDetectionParams) -> ModeOutput:
        return await self._oracle_output(
            source, AIExtractionType.LOGOS, "Extracted {n} logos/brand elements"
        )

    # ------------------------------------------------------------------
    # Cloud analyzer
    # ------------------------------------------------------------------

    async def _cloud_regions(
        self, source: SourceImage, people: bool = False
    ) -> Tuple[Optional[List[DetectedRegion]], Optional[str]]:
        """
        Call the analyzer and convert its regions.

        Returns:
            (regions, None) on success or (None, error) on failure
        """
        if self.cloud_analyzer is None:
            return None, ErrorMessages.CLOUD_NOT_CONFIGURED

        label = "People detection" if people else "Cloud vision analysis"
        try:
            if people:
                analysis: CloudAnalysis = await self.cloud_analyzer.detect_people(source.image_bytes)
            else:
                analysis = await self.cloud_analyzer.analyze(source.image_bytes)
        except Exception as e:
            logger.error(f"{label} failed: {e}", exc_info=True)
            return None, f"{label} failed: {e}"

        if not analysis.success:
            return None, analysis.error or f"{label} failed"

        text_regions = () if people else analysis.text_regions
        return cloud_to_detected(analysis.regions, source.width, source.height, text_regions), None

    async def _run_cloud_vision(self, source: SourceImage, params: CloudRegionParams) -> ModeOutput:
        regions, error = await self._cloud_regions(source)
        if regions is None:
            return ModeOutput.failed(error)

        if params.refine and regions:
            threshold = params.refine_threshold or self.settings.refine_threshold
            regions = await asyncio.to_thread(self.refiner.refine_all, source.buffer, regions, threshold)

        return ModeOutput(
            regions=regions,
            summary="Cloud vision detected {n} regions with pixel-accurate bounds",
            filename_template="cloud-{i}-{shape}.png",
        )

    async def _run_people(self, source: SourceImage, params: CloudRegionParams) -> ModeOutput:
        regions, error = await self._cloud_regions(source, people=True)
        if regions is None:
            return ModeOutput.failed(error)

        regions = [
            region.model_copy(update={"shape": "person", "description": region.description or "Person"})
            for region in regions
        ]
        if params.refine and regions:
            threshold = params.refine_threshold or RefineDefaults.PEOPLE_THRESHOLD
            regions = await asyncio.to_thread(self.refiner.refine_all, source.buffer, regions, threshold)

        return ModeOutput(
            regions=regions,
            summary="Extracted {n} people with pixel-accurate bounds",
            filename_template="person-{i}.png",
        )

    # ------------------------------------------------------------------
    # Hybrid fusion
    # ------------------------------------------------------------------

    async def _hybrid_cloud(self, source: SourceImage) -> List[DetectedRegion]:
        if self.cloud_analyzer is None:
            return []
        regions, error = await self._cloud_regions(source)
        if regions is None:
            logger.warning(f"Hybrid extraction continues without cloud regions: {error}")
            return []
        return regions

    async def _hybrid_oracle(self, source: SourceImage) -> List[DetectedRegion]:
        if self.completion_provider is None:
            return []
        try:
            return await self._query_oracle(source, AIExtractionType.ALL)
        except Exception as e:
            logger.error(f"Hybrid extraction continues without AI regions: {e}", exc_info=True)
            return []

    async def _hybrid_pixels(
        self, source: SourceImage, mode: ExtractionMode, params: BaseDetectionParams
    ) -> List[DetectedRegion]:
        try:
            result = await asyncio.to_thread(self._detect_pixels, mode, source.buffer, params)
        except Exception as e:
            logger.error(f"Hybrid pixel strategy {mode.value} failed: {e}", exc_info=True)
            return []
        return result["regions"]

    async def _run_hybrid(self, source: SourceImage, params: HybridParams) -> ModeOutput:
        strategies = params.pixel_strategies or list(self.settings.hybrid_pixel_strategies)
        # Pixel strategies share the request parameters, each taking the keys it knows
        pixel_params = [
            (mode, prepare_params(source.parameters, MODE_PARAMS[mode])) for mode in strategies
        ]

        cloud, ai, *pixel_results = await asyncio.gather(
            self._hybrid_cloud(source),
            self._hybrid_oracle(source),
            *(self._hybrid_pixels(source, mode, options) for mode, options in pixel_params),
        )

        groups: Dict[RegionSource, List[DetectedRegion]] = {
            RegionSource.CLOUD: cloud,
            RegionSource.AI: ai,
        }
        for regions in pixel_results:
            for region in regions:
                groups.setdefault(region.source, []).append(region)

        counts = ", ".join(f"{src.value}: {len(regions)}" for src, regions in groups.items())
        logger.info(f"Hybrid sources before reconciliation: {counts}")

        reconciled = self.reconciler.reconcile(groups)
        threshold = params.refine_threshold or self.settings.hybrid_refine_threshold
        if reconciled:
            reconciled = await asyncio.to_thread(
                self.refiner.refine_all, source.buffer, reconciled, threshold
            )

        return ModeOutput(
            regions=reconciled,
            summary=f"Hybrid extraction found {{n}} regions ({counts})",
            filename_template="hybrid-{i}-{shape}.png",
            description_template="{desc} [{source}]",
        )
