"""
Parameter processing utilities.

Handles validation of the free-form ``parameters`` dict of an extraction
request against the params model of the selected mode.
"""

from typing import Any, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

T = TypeVar("T", bound=BaseModel)


def prepare_params(params: Optional[Mapping[str, Any]], params_class: Type[T]) -> T:
    """
    Validate raw request parameters into a params model.

    Args:
        params: Raw parameters dict (None means all defaults)
        params_class: Pydantic parameter class of the selected mode

    Returns:
        Validated parameters instance

    Raises:
        InvalidParametersException: If a value fails validation

    Example:
        >>> params = prepare_params({"min_size": 30}, ContourParams)
        >>> params.color_threshold
        25
    """
    from api.exceptions import InvalidParametersException

    if isinstance(params, params_class):
        return params
    try:
        return params_class(**dict(params or {}))
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise InvalidParametersException(f"Invalid parameters for {params_class.__name__}: {errors}")

