from __future__ import annotations

from estimator.data import ALUMINUM_G97_RPM, CONSERVATIVE_ALUMINUM_MAX_RPM
from estimator.formulas import parse_float
from estimator.models import AnalysisConfig

USER_PROMPT = "分析這張工程圖，並預估使用二軸 CNC 車床加工的時間與工序。"

RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "partName": {"type": "string", "description": "零件名稱或是 '未命名零件'"},
        "material": {"type": "string", "description": "最終使用的材質"},
        "stockDiameter": {"type": "string", "description": "預估毛胚直徑 (包含單位，如 mm)"},
        "stockInnerDiameter": {
            "type": "string",
            "description": "預估毛胚內徑 (包含單位，如 mm)，若是實心請填 0",
        },
        "stockLength": {"type": "string", "description": "預估毛胚長度 (包含單位，如 mm)"},
        "difficultyRating": {
            "type": "string",
            "enum": ["Low", "Medium", "High"],
            "description": "難易度 (英文列舉值，介面會顯示中文)",
        },
        "notes": {"type": "string", "description": "簡短的工程註記或加工注意事項 (繁體中文)"},
        "totalTimeSeconds": {"type": "number", "description": "總加工週期秒數"},
        "operations": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string", "description": "工序名稱 (如：外徑粗車)"},
                    "description": {"type": "string", "description": "工序詳細說明"},
                    "toolType": {"type": "string", "description": "刀具類型 (如：CNMG 432 外徑刀)"},
                    "estimatedTimeSeconds": {"type": "number", "description": "該工序預估秒數"},
                    "rpm": {
                        "type": "number",
                        "description": "建議轉速 (若是 G96 則為最高限制轉速或平均轉速)",
                    },
                    "feedRate": {"type": "number", "description": "建議進給 (mm/rev)"},
                },
                "required": ["name", "description", "estimatedTimeSeconds", "toolType"],
            },
        },
    },
    "required": ["partName", "material", "operations", "totalTimeSeconds", "difficultyRating"],
}


# ----------------------------
# Instruction blocks
# ----------------------------
def material_instruction(material: str) -> str:
    if material:
        return f'使用者已明確指定加工材質為: "{material}"。請務必基於此材質特性設定切削參數 (S/F)。'
    return '識別可能的材質 (若圖面未指定，預設為 "S45C 中碳鋼")。'

def dimension_instruction(od: str, inner: str, length: str) -> str:
    inner_value = parse_float(inner) if inner else None
    if inner_value and inner_value > 0:
        hint = "(這是一支管材/空心料，內徑加工請勿使用鑽頭鑽實心，請直接使用鏜孔刀)"
    else:
        hint = "(實心棒材)"
    return (
        "使用者設定的毛胚尺寸:\n"
        f"- 外徑 (OD): {od} mm\n"
        f"- 內徑 (ID): {inner or '0'} mm {hint}\n"
        f"- 長度 (L): {length} mm"
    )

SIDE_INSTRUCTIONS = {
    "1-left": (
        "**加工方向: 單面加工 - 左側 (Left Side Only)**\n"
        "- 假設夾頭夾持工件的右側 (Right)，刀具加工工件的左側 (Left)。\n"
        "- 請只分析圖面左半部的特徵進行估算。\n"
        "- 不需要「掉頭 (Flip)」工序。"
    ),
    "1-right": (
        "**加工方向: 單面加工 - 右側 (Right Side Only)**\n"
        "- 這是標準臥式車床的加工方向。\n"
        "- 假設夾頭夾持工件的左側 (Left)，刀具加工工件的右側 (Right)。\n"
        "- 請只分析圖面右半部的特徵進行估算。\n"
        "- 不需要「掉頭 (Flip)」工序。"
    ),
    "1-complete": (
        "**加工方向: 一次加工完成 (Complete in One Setup)**\n"
        "- 假設目標是在一次裝夾中完成所有可能的加工 (或使用切斷刀直接切下成品)。\n"
        "- **嚴禁** 產生「掉頭 (Flip Part)」工序。\n"
        "- 若圖面有背面特徵，請假設使用切斷刀加工背面，或忽略無法接觸的區域。"
    ),
    "2": (
        "**加工方向: 雙面加工 (2 Sides / OP10 + OP20)**\n"
        "- 必須包含兩個階段。\n"
        "- 第一序 (OP10) 加工一端。\n"
        "- **必須** 包含一個「人工掉頭 (Flip Part)」或「副主軸接料」的動作工序。\n"
        "- 第二序 (OP20) 加工另一端。"
    ),
}

STRATEGY_INSTRUCTIONS = {
    "conservative": (
        "**加工策略: 保守 (Conservative)**\n"
        "- 請使用較低、安全的切削速度 (RPM) 與進給率 (Feed)。\n"
        "- 優先考慮加工穩定性、夾持力不足的可能性以及表面光潔度。\n"
        "- **特別注意**: 對於鋁合金 (AL6061) 或軟料，即使材質允許高速，在此模式下請將轉速限制在 "
        f"{CONSERVATIVE_ALUMINUM_MAX_RPM} RPM 以下，進給率保持保守，避免震動或纏屑。\n"
        "- 估算時間會較長。"
    ),
    "standard": (
        "**加工策略: 標準 (Standard)**\n"
        "- 使用刀具原廠建議的標準切削參數。\n"
        "- 平衡加工時間與刀具壽命。"
    ),
    "aggressive": (
        "**加工策略: 高效率 (Aggressive/Production)**\n"
        "- 假設機台剛性良好且使用現代化刀具。\n"
        "- 請使用該材質允許的最高合理切削速度與進給率，以縮短 Cycle Time。\n"
        "- 減少精修預留量與走刀次數。"
    ),
}

def spindle_instruction(spindle_mode: str) -> str:
    if spindle_mode == "G96":
        return (
            "**主軸轉速模式: G96 (周速一定控制 Constant Surface Speed)**\n"
            "- 這是 CNC 車床最常用的模式。\n"
            "- 請假設切削速度 Vc (m/min) 保持恆定。\n"
            "- 當刀具往中心移動 (直徑變小) 時，RPM 會自動升高。\n"
            "- **計算時間時**: 請務必考慮隨著直徑變小 RPM 變快，導致加工時間縮短的效應。\n"
            "- (中心鑽孔、攻牙等中心加工除外，仍依 G97 邏輯)。"
        )
    return (
        "**主軸轉速模式: G97 (固定轉速控制 Constant RPM)**\n"
        "- 請假設主軸在加工過程中維持固定轉速 (Fixed RPM)。\n"
        "- 請依據工件最大直徑或最保守條件設定一個固定的 RPM。\n"
        "- 由於直徑變小時切削速度 (Vc) 會降低，**加工時間通常會比 G96 長**，請反映此差異。\n"
        "- 適用於鑽孔、攻牙、車牙或使用者指定特殊需求。\n"
        "\n"
        "**鋁合金 (Aluminum) G97 轉速強制規定:**\n"
        "若材質判斷為鋁合金 (Aluminum/AL6061/7075等)，請直接使用以下固定轉速，勿自行計算：\n"
        f"- 保守 (Conservative): {ALUMINUM_G97_RPM['conservative']} RPM\n"
        f"- 標準 (Standard): {ALUMINUM_G97_RPM['standard']} RPM\n"
        f"- 高效率 (Aggressive): {ALUMINUM_G97_RPM['aggressive']} RPM"
    )

def remarks_instruction(remarks: str) -> str:
    remarks = (remarks or "").strip()
    if not remarks:
        return ""
    return (
        "**⚠️ 使用者重要備註 (User Remarks)**:\n"
        "使用者給予了以下特別指示，請在分析與安排工序時**優先**遵守：\n"
        f'"{remarks}"'
    )


# ----------------------------
# System instruction
# ----------------------------
def build_system_instruction(config: AnalysisConfig) -> str:
    sides = SIDE_INSTRUCTIONS.get(config.sides, SIDE_INSTRUCTIONS["2"])
    strategy = STRATEGY_INSTRUCTIONS.get(config.strategy, STRATEGY_INSTRUCTIONS["standard"])

    return f"""你是一位擁有 20 年經驗的 CNC 數控車床程式設計師與製造工程師。
你的任務是分析機械工程圖 (Blueprints/Technical Drawings)。

請使用 **繁體中文 (Traditional Chinese)** 並使用台灣機械加工常用術語回答。

**強制遵循以下使用者設定:**
1. {material_instruction(config.material)}
2. {dimension_instruction(config.od, config.id, config.length)}
3. {sides}
4. {strategy}
5. {spindle_instruction(config.spindle_mode)}
6. {remarks_instruction(config.user_remarks)}

**分析步驟:**
1. 根據使用者提供的毛胚尺寸作為起始狀態。
2. 將加工過程分解為合理的車床工序 (例如：車端面、外徑粗車、外徑精車、鑽孔、內徑鏜孔、切槽、車牙、切斷、掉頭、背面加工 等)。
3. 針對每個工序，依據上述「加工策略」與「主軸模式(G96/G97)」預估切削參數 (轉速 RPM, 進給 Feed) 並計算加工秒數 (Cycle Time)。
4. 加總總時間。
5. 評估加工難易度。

請務必考量裝夾與換刀時間。請回傳純 JSON 格式資料。
"""
