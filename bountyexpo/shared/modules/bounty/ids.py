"""
Identifier normalisation.

Rows reach us from different backend paths with ids typed either as numbers
or as strings. Ids are converted to `str` when they enter a model; these
helpers cover raw values that have not been through a model yet.
"""
from typing import Annotated, Any, Optional

from pydantic import BeforeValidator


def normalize_id(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid id: {value!r}")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def same_id(a: Any, b: Any) -> bool:
    left, right = normalize_id(a), normalize_id(b)
    return left is not None and left == right


Id = Annotated[str, BeforeValidator(normalize_id)]
