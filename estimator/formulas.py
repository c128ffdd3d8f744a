from __future__ import annotations

import math
import re

from estimator.data import (
    DENSITY_MAP,
    DENSITY_KEYWORDS,
    DEFAULT_DENSITY,
    DIFFICULTY_LABELS,
    SIDE2_KEYWORDS,
    FLIP_KEYWORDS,
)
from estimator.models import EstimationResult, MachiningOperation

_NON_NUMERIC = re.compile(r"[^0-9.]")
_UNSIGNED = re.compile(r"\d+(?:\.\d*)?|\.\d+")
_LEADING_FLOAT = re.compile(r"\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)")


# ----------------------------
# Parsing / rounding
# ----------------------------
def parse_dim(value) -> float:
    """'Ø25.4 mm' -> 25.4. Anything without digits is 0."""
    if value is None:
        return 0.0
    m = _UNSIGNED.match(_NON_NUMERIC.sub("", str(value)))
    if not m:
        return 0.0
    return float(m.group(0))

def parse_float(raw) -> float | None:
    # leading-number parse; '12abc' -> 12.0, 'abc' -> None
    if raw is None:
        return None
    m = _LEADING_FLOAT.match(str(raw))
    if not m:
        return None
    return float(m.group(1))

def parse_float_or_zero(raw) -> float:
    return parse_float(raw) or 0.0

def parse_amount(raw) -> float:
    # rates, prices and densities: finite and >= 0, anything else is 0
    value = parse_float_or_zero(raw)
    if not math.isfinite(value) or value < 0:
        return 0.0
    return value

def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


# ----------------------------
# Stock weight / cost
# ----------------------------
def detect_density(material: str | None) -> float:
    mat = (material or "").upper()
    for key, density in DENSITY_MAP.items():
        if key in mat:
            return density
    for keywords, density in DENSITY_KEYWORDS:
        if any(k in mat for k in keywords):
            return density
    return DEFAULT_DENSITY

def stock_volume_mm3(od_mm: float, id_mm: float, length_mm: float) -> float:
    r_out = od_mm / 2.0
    r_in = id_mm / 2.0
    volume = math.pi * (r_out ** 2 - r_in ** 2) * length_mm
    return max(volume, 0.0)

def stock_weight_kg(volume_mm3: float, density_g_cm3: float) -> float:
    # 1 cm^3 = 1000 mm^3, density in g/cm^3
    if density_g_cm3 < 0:
        raise ValueError("Density must be >= 0")
    return (volume_mm3 / 1000.0 * density_g_cm3) / 1000.0

def machining_cost(seconds: float, hourly_rate: float) -> float:
    return (seconds / 3600.0) * hourly_rate

def material_cost(weight_kg: float, price_per_kg: float) -> float:
    return weight_kg * price_per_kg

def cost_breakdown(
    od: str | None,
    inner: str | None,
    length: str | None,
    density: float,
    total_seconds: float,
    hourly_rate: float,
    price_per_kg: float,
) -> dict:
    volume = stock_volume_mm3(parse_dim(od), parse_dim(inner), parse_dim(length))
    weight = stock_weight_kg(volume, density)
    mach = machining_cost(total_seconds, hourly_rate)
    mat = material_cost(weight, price_per_kg)
    return {
        "volume": volume,
        "weight": weight,
        "machining_cost": mach,
        "material_cost": mat,
        "total_cost": mach + mat,
    }

def format_weight(weight_kg: float) -> str:
    if 0 < weight_kg < 0.01:
        return "< 0.01"
    return f"{weight_kg:.3f}"

def format_cost(total: float) -> str:
    return f"{math.ceil(total):,}"


# ----------------------------
# Editable estimate
# ----------------------------
_PARAM_FIELDS = {"rpm": "rpm", "feedRate": "feed_rate"}
_TEXT_FIELDS = ("name", "description")

def work_factor(op: MachiningOperation | None) -> float | None:
    """
    Geometry constant of an operation: time * rpm * feed.
    Only defined when all three are present and non-zero.
    """
    if op is None:
        return None
    if op.estimated_time_seconds and op.rpm and op.feed_rate:
        return op.estimated_time_seconds * op.rpm * op.feed_rate
    return None

def total_time(operations: list[MachiningOperation]) -> float:
    return round_half_up(sum(op.estimated_time_seconds or 0 for op in operations), 1)

def update_operation_param(
    original: EstimationResult,
    current: EstimationResult,
    index: int,
    field: str,
    raw,
) -> EstimationResult:
    """
    Set rpm or feedRate on one operation and rescale its time:
      time = work_factor / (rpm * feed)
    The work factor always comes from the model's original answer, so
    repeated edits never drift.
    """
    if field not in _PARAM_FIELDS:
        raise ValueError(f"Unknown parameter: {field}")
    raw = "" if raw is None else str(raw)
    value = 0.0 if raw.strip() == "" else parse_float(raw)

    operations = list(current.operations)
    op = operations[index].model_copy(update={_PARAM_FIELDS[field]: value})

    original_op = original.operations[index] if index < len(original.operations) else None
    wf = work_factor(original_op)
    if wf is not None:
        new_rpm = op.rpm or 0
        new_feed = op.feed_rate or 0
        if new_rpm > 0 and new_feed > 0:
            op = op.model_copy(
                update={"estimated_time_seconds": round_half_up(wf / (new_rpm * new_feed), 1)}
            )

    operations[index] = op
    return current.model_copy(
        update={"operations": operations, "total_time_seconds": total_time(operations)}
    )

def update_operation_text(current: EstimationResult, index: int, field: str, value: str) -> EstimationResult:
    if field not in _TEXT_FIELDS:
        raise ValueError(f"Unknown text field: {field}")
    operations = list(current.operations)
    operations[index] = operations[index].model_copy(update={field: value})
    return current.model_copy(update={"operations": operations})


# ----------------------------
# Reporting helpers
# ----------------------------
def split_side_times(operations: list[MachiningOperation]) -> tuple[int, int]:
    """
    L1 / L2 seconds for two-sided work. A side-2 keyword switches buckets;
    a flip/transfer operation is counted in L1 and switches after it.
    """
    l1 = 0.0
    l2 = 0.0
    is_side2 = False

    for op in operations:
        name = op.name.lower()
        seconds = op.estimated_time_seconds or 0

        if any(k in name for k in SIDE2_KEYWORDS):
            is_side2 = True

        if any(k in name for k in FLIP_KEYWORDS):
            l1 += seconds
            is_side2 = True
            continue

        if is_side2:
            l2 += seconds
        else:
            l1 += seconds

    return int(round_half_up(l1)), int(round_half_up(l2))

def time_shares(operations: list[MachiningOperation]) -> list[dict]:
    total = sum(op.estimated_time_seconds or 0 for op in operations)
    shares = []
    for op in operations:
        seconds = op.estimated_time_seconds or 0
        pct = (seconds / total * 100.0) if total > 0 else 0.0
        shares.append({"name": op.name, "seconds": seconds, "percent": pct})
    return shares

def format_time(seconds: float) -> str:
    minutes = math.floor(seconds / 60)
    remaining = int(round_half_up(seconds % 60))
    return f"{minutes}分 {remaining}秒"

def format_param(value: float | None) -> str:
    if not value:
        return ""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))

def difficulty_label(rating: str) -> str:
    return DIFFICULTY_LABELS.get(rating, rating)

def has_inner_diameter(value: str | None) -> bool:
    if not value:
        return False
    s = re.sub(r"ID", "", str(value), flags=re.IGNORECASE)
    s = re.sub(r"\s*mm$", "", s, flags=re.IGNORECASE).strip()
    if s in ("", "0", "0.0"):
        return False
    num = parse_float(s)
    return num is not None and num > 0

def format_inner_diameter(value: str | None) -> str:
    if not value:
        return ""
    return re.sub(r"ID", "", str(value), flags=re.IGNORECASE).strip()

def format_time_ago(timestamp_ms: int, now_ms: int) -> str:
    seconds = (now_ms - timestamp_ms) // 1000
    if seconds < 60:
        return "剛剛"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes} 分鐘前"
    hours = minutes // 60
    if hours < 24:
        return f"{hours} 小時前"
    return f"{hours // 24} 天前"
