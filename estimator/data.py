# estimator/data.py

# Material choices offered on the upload form (first = let the model decide)
MATERIAL_AUTO = "自動判斷 (依圖面)"
MATERIAL_CUSTOM = "其他 (自訂)"

COMMON_MATERIALS = [
    MATERIAL_AUTO,
    "S45C 中碳鋼",
    "SUS304 不鏽鋼",
    "SUS316 不鏽鋼",
    "AL6061和5056鋁合金",
    "AL7075 航太鋁",
    "SCM440 鉻鉬合金鋼",
    "SCM415 綠十字",
    "1215 快削鋼",
    "SKD11 模具鋼",
    "C3604 黃銅 (Brass)",
    "POM/ABS 工程塑膠",
    "FC/FCD 鑄鐵",
    MATERIAL_CUSTOM,
]

# Densities in g/cm^3. Matched by substring in this order, so FC wins over FCD.
DENSITY_MAP = {
    # ----- Steels -----
    "S45C": 7.85,
    "SUS304": 7.93,
    "SUS316": 7.98,

    # ----- Aluminum -----
    "AL6061": 2.70,
    "AL7075": 2.81,

    # ----- Alloy / free-cutting / tool steels -----
    "SCM440": 7.85,
    "SCM415": 7.85,
    "1215": 7.87,
    "SKD11": 7.80,

    # ----- Brass -----
    "C3604": 8.50,

    # ----- Plastics -----
    "POM": 1.41,
    "ABS": 1.05,

    # ----- Cast iron -----
    "FC": 7.20,
    "FCD": 7.10,
}

# Fallbacks when no grade code matches: (keywords, density)
DENSITY_KEYWORDS = [
    (("鋁", "ALUMINUM"), 2.7),
    (("不鏽鋼", "STAINLESS"), 7.93),
    (("銅", "BRASS"), 8.5),
    (("塑膠", "PLASTIC"), 1.2),
]

DEFAULT_DENSITY = 7.85  # steel

# Cost dashboard defaults (TWD)
DEFAULT_HOURLY_RATE = 600.0
DEFAULT_MATERIAL_PRICE_KG = 45.0

SIDE_MODES = {
    "1-right": {"label": "右側加工", "desc": "標準 (夾左車右)"},
    "1-left": {"label": "左側加工", "desc": "反向 (夾右車左)"},
    "1-complete": {"label": "一次完成", "desc": "全序 (無掉頭)"},
    "2": {"label": "雙面加工", "desc": "OP10 + OP20"},
}
DEFAULT_SIDE_MODE = "1-right"

STRATEGIES = {
    "conservative": {"label": "保守 (Conservative)", "desc": "低轉速、重視穩定性"},
    "standard": {"label": "標準 (Standard)", "desc": "原廠建議參數，平衡壽命"},
    "aggressive": {"label": "高效率 (Aggressive)", "desc": "最高速切削，縮短時間"},
}
DEFAULT_STRATEGY = "standard"

SPINDLE_MODES = {
    "G96": {"label": "G96 (周速一定)", "desc": "轉速隨直徑變化，時間較短"},
    "G97": {"label": "G97 (固定轉速)", "desc": "固定 RPM，時間較長"},
}
DEFAULT_SPINDLE_MODE = "G96"

# G97 fixed spindle speed for aluminum, per strategy
ALUMINUM_G97_RPM = {
    "conservative": 1500,
    "standard": 1800,
    "aggressive": 2000,
}

# Conservative strategy RPM cap for aluminum / soft stock
CONSERVATIVE_ALUMINUM_MAX_RPM = 2500

DIFFICULTY_LABELS = {
    "High": "困難",
    "Medium": "中等",
    "Low": "簡易",
}

# Operation-name keywords (matched lowercase) used to split L1 / L2 time
SIDE2_KEYWORDS = ("op20", "side 2", "第二序", "背面")
FLIP_KEYWORDS = ("flip", "掉頭", "反轉", "接料", "副主軸")

ALLOWED_IMAGE_TYPES = ("image/png", "image/jpeg", "image/webp")
PDF_MIME_TYPE = "application/pdf"
