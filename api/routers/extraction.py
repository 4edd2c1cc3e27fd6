"""
Extraction API Router - Region detection, extraction and cropping endpoints

/extract and /detect share one request shape: an inline base64 image, a
mode and that mode's parameters. A source image that cannot be decoded is
reported in the result body (``success=false``), not as an HTTP error.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from api.dependencies import (
    Providers,
    check_image_size,
    decode_request_image,
    get_extraction_service,
    get_extraction_settings,
    get_providers,
    mode_parameters,
)
from api.exceptions import RegionTooSmallException, safe_endpoint
from api.models import CropRequest, CropResponse, ExtractionRequest, ModeInfo, RefineRequest
from config import ExtractionConfig
from core.constants import ImageConstants
from core.enums import ExtractionMode
from schemas import BoundingBox, DetectionResult, ExtractionResult
from services.extraction_service import (
    MODE_DESCRIPTIONS,
    MODE_PARAMS,
    MODE_REQUIREMENTS,
    ExtractionService,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/extract")
@safe_endpoint
async def extract(
    request: ExtractionRequest,
    service: ExtractionService = Depends(get_extraction_service),
    settings: ExtractionConfig = Depends(get_extraction_settings),
) -> ExtractionResult:
    """
    Detect regions with the selected mode and return each one as a PNG crop.

    OUTPUT results:
    - images: cropped regions with bounding box, description and filename
    - total_found: number of images actually produced
    """
    image_bytes = decode_request_image(request.image_base64, settings)
    return await service.extract(
        image_bytes, request.mime_type, request.mode, request.parameters
    )


@router.post("/extract-upload")
@safe_endpoint
async def extract_upload(
    file: UploadFile = File(..., description="Source image"),
    mode: ExtractionMode = Form(ExtractionMode.CONTOUR),
    parameters: Optional[str] = Form(None, description="Mode parameters as a JSON object"),
    service: ExtractionService = Depends(get_extraction_service),
    settings: ExtractionConfig = Depends(get_extraction_settings),
) -> ExtractionResult:
    """Same as /extract for a multipart file upload."""
    image_bytes = check_image_size(await file.read(), settings)
    mime_type = file.content_type or ImageConstants.DEFAULT_MIME_TYPE
    return await service.extract(image_bytes, mime_type, mode, mode_parameters(parameters))


@router.post("/detect")
@safe_endpoint
async def detect(
    request: ExtractionRequest,
    service: ExtractionService = Depends(get_extraction_service),
    settings: ExtractionConfig = Depends(get_extraction_settings),
) -> DetectionResult:
    """
    Detect regions without cropping them.

    OUTPUT results:
    - regions: bounding boxes with source, shape and confidence
    """
    image_bytes = decode_request_image(request.image_base64, settings)
    return await service.detect(
        image_bytes, request.mime_type, request.mode, request.parameters
    )


@router.post("/refine")
@safe_endpoint
async def refine(
    request: RefineRequest,
    service: ExtractionService = Depends(get_extraction_service),
    settings: ExtractionConfig = Depends(get_extraction_settings),
) -> BoundingBox:
    """Snap an approximate bounding box to the nearest strong edges."""
    image_bytes = decode_request_image(request.image_base64, settings)
    return service.refine_bounds(image_bytes, request.bounding_box, request.threshold)


@router.post("/crop")
@safe_endpoint
async def crop(
    request: CropRequest,
    service: ExtractionService = Depends(get_extraction_service),
    settings: ExtractionConfig = Depends(get_extraction_settings),
) -> CropResponse:
    """Crop one bounding box to a PNG."""
    image_bytes = decode_request_image(request.image_base64, settings)
    result = service.crop_region(image_bytes, request.bounding_box, request.padding)
    if not result.success:
        raise RegionTooSmallException(result.error)

    return CropResponse(
        success=True,
        base64_data=result.base64_data,
        width=result.width,
        height=result.height,
        bounding_box=result.bounding_box,
    )


@router.get("/modes")
@safe_endpoint
async def list_modes(providers: Providers = Depends(get_providers)) -> List[ModeInfo]:
    """List every extraction mode with its parameter defaults."""
    configured = {
        "oracle": providers.completion_provider is not None,
        "cloud": providers.cloud_analyzer is not None,
    }
    modes = []
    for mode in ExtractionMode:
        requires = MODE_REQUIREMENTS.get(mode)
        modes.append(
            ModeInfo(
                mode=mode,
                description=MODE_DESCRIPTIONS[mode],
                requires=requires,
                available=requires is None or configured[requires],
                parameters=MODE_PARAMS[mode]().to_dict(),
            )
        )
    return modes
