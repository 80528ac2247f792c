import tempfile
from decimal import Decimal
from pathlib import Path
from typing import Optional


def ensure_dir(path: str | Path) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def make_work_dir(root: Optional[str] = None, prefix: str = "render-") -> str:
    """
    Create a fresh, uniquely named working directory for one job.
    Never reuses an existing directory.
    """
    if root:
        ensure_dir(root)
    return tempfile.mkdtemp(prefix=prefix, dir=root or None)


def format_seconds(value: float) -> str:
    """Render a number for ffmpeg filter options: 5.0 -> "5", 2.5 -> "2.5", 5e-05 -> "0.00005".

    ffmpeg does not parse exponent notation, so output is always fixed-point.
    """
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return format(Decimal(repr(value)), "f")
