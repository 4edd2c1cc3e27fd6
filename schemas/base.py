"""
Base schema for per-strategy detection parameters.
"""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict


class BaseDetectionParams(BaseModel):
    """
    Common base for all detection parameter models.

    Unknown keys are ignored so a request can carry parameters for several
    modes at once.
    """

    model_config = ConfigDict(extra="ignore", use_enum_values=False)

    def to_dict(self) -> Dict[str, Any]:
        """
        Flat dict consumed by the detector ``detect`` methods.

        Unset optional values are dropped and enums (including lists of
        modes) are reduced to their string values, so the result is also
        what ``GET /modes`` publishes as the mode defaults.
        """
        return self.model_dump(mode="json", exclude_none=True)
