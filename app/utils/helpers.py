from typing import Any


def normalize_id(value: Any) -> int:
    """
    Coerce an identifier arriving at a boundary (webhook payload, path, ORM
    object) into the integer primary key used everywhere inside.
    """
    if value is None:
        raise ValueError("Identifier is required")
    if isinstance(value, bool):
        raise ValueError(f"Invalid identifier: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isdigit():
            return int(stripped)
        raise ValueError(f"Invalid identifier: {value!r}")
    if hasattr(value, "id"):
        return normalize_id(value.id)
    raise ValueError(f"Invalid identifier: {value!r}")
