import re

_UNITS = {
    "": 1,
    "b": 1,
    "k": 1024,
    "kb": 1024,
    "ki": 1024,
    "m": 1024**2,
    "mb": 1024**2,
    "mi": 1024**2,
    "g": 1024**3,
    "gb": 1024**3,
    "gi": 1024**3,
    "t": 1024**4,
    "tb": 1024**4,
    "ti": 1024**4,
}


def parse_storage_size(size_str: str) -> int:
    """Parse '5Gi', '5g', '5GB' or a plain byte count into bytes."""
    size_str = size_str.strip().lower()
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([a-z]*)$", size_str)
    if not match:
        raise ValueError(f"Invalid storage size format: {size_str}")
    unit = match.group(2)
    if unit not in _UNITS:
        raise ValueError(f"Unknown storage unit: {unit}")
    return int(float(match.group(1)) * _UNITS[unit])


def to_quantity(size: int | str) -> str:
    """Convert a size to a Kubernetes binary quantity.

    Integers are GiB. Strings are normalized to the largest binary unit that
    represents them exactly, e.g. '5g' -> '5Gi', '1536m' -> '1536Mi'.
    """
    if isinstance(size, bool):
        raise ValueError(f"Invalid storage size: {size!r}")
    if isinstance(size, int):
        if size < 1:
            raise ValueError(f"Storage size must be at least 1Gi, got {size}")
        return f"{size}Gi"

    bytes_size = parse_storage_size(size)
    if bytes_size < 1:
        raise ValueError(f"Storage size must be positive, got {size!r}")
    for suffix, factor in (("Ti", 1024**4), ("Gi", 1024**3), ("Mi", 1024**2), ("Ki", 1024)):
        if bytes_size % factor == 0:
            return f"{bytes_size // factor}{suffix}"
    return str(bytes_size)
