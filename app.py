import logging
import sys

from openai import OpenAIError

from estimator.client import analyze_blueprint, classify_error
from estimator.config import load_settings
from estimator.data import (
    COMMON_MATERIALS,
    MATERIAL_AUTO,
    MATERIAL_CUSTOM,
    SIDE_MODES,
    STRATEGIES,
    SPINDLE_MODES,
    DEFAULT_HOURLY_RATE,
    DEFAULT_MATERIAL_PRICE_KG,
)
from estimator.errors import EstimatorError
from estimator.formulas import (
    cost_breakdown,
    detect_density,
    difficulty_label,
    format_cost,
    format_time,
    format_weight,
    split_side_times,
)
from estimator.history import HistoryStore
from estimator.imaging import file_to_image_part, guess_mime_type, to_data_url
from estimator.models import AnalysisConfig


def get_dim(prompt: str, allow_blank: bool = False) -> str:
    while True:
        raw = input(prompt).strip()
        if raw == "" and allow_blank:
            return ""
        try:
            if float(raw) <= 0:
                print("Enter a number > 0.")
                continue
            return raw
        except ValueError:
            print("Enter a valid number.")

def choose(title: str, options: list[str], default: int = 1) -> int:
    print(f"\n{title}")
    for i, label in enumerate(options, start=1):
        print(f"{i}) {label}")
    while True:
        raw = input(f"Choose 1-{len(options)} [{default}]: ").strip()
        if raw == "":
            return default - 1
        if raw.isdigit() and 1 <= int(raw) <= len(options):
            return int(raw) - 1
        print("Invalid choice.")


def main() -> int:
    settings = load_settings()
    logging.basicConfig(level=settings["LOG_LEVEL"], format="%(levelname)s %(name)s: %(message)s")

    print("\nAI Lathe Cycle-Time Estimator")
    path = input("Blueprint file (PNG/JPG/WEBP/PDF): ").strip().strip('"')
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        print(f"Cannot read file: {e}")
        return 1

    material = COMMON_MATERIALS[choose("Material", COMMON_MATERIALS)]
    if material == MATERIAL_CUSTOM:
        material = input("Material: ").strip()
    elif material == MATERIAL_AUTO:
        material = ""

    od = get_dim("Stock OD (mm): ")
    inner = get_dim("Stock ID (mm, blank = solid): ", allow_blank=True)
    length = get_dim("Stock length (mm): ")

    side_keys = list(SIDE_MODES)
    strategy_keys = list(STRATEGIES)
    spindle_keys = list(SPINDLE_MODES)
    sides = side_keys[choose("Sides", [f"{v['label']} - {v['desc']}" for v in SIDE_MODES.values()])]
    strategy = strategy_keys[choose("Strategy", [v["label"] for v in STRATEGIES.values()], default=2)]
    spindle = spindle_keys[choose("Spindle mode", [v["label"] for v in SPINDLE_MODES.values()])]
    remarks = input("\nRemarks (optional): ").strip()

    config = AnalysisConfig(
        material=material, od=od, id=inner, length=length,
        sides=sides, strategy=strategy, spindle_mode=spindle, user_remarks=remarks,
    )

    print("\nAnalyzing...")
    try:
        image_b64, mime_type = file_to_image_part(data, guess_mime_type(path, None))
        result = analyze_blueprint(image_b64, mime_type, config, settings=settings)
    except (EstimatorError, OpenAIError) as e:
        print(classify_error(e))
        return 1

    HistoryStore(settings["HISTORY_PATH"], settings["HISTORY_MAX_ITEMS"]).save_history_item(
        result, config, to_data_url(image_b64, mime_type)
    )

    print(f"\n{result.part_name} | {result.material} | 難度: {difficulty_label(result.difficulty_rating)}")
    print(f"Stock: Ø{result.stock_diameter} x {result.stock_inner_diameter or '0'} x {result.stock_length}L\n")
    for i, op in enumerate(result.operations, start=1):
        params = f"S{op.rpm:.0f} F{op.feed_rate}" if op.rpm and op.feed_rate else "-"
        print(f"{i:02d} {op.name:<16} {op.tool_type:<24} {params:<16} {op.estimated_time_seconds:>7.1f} s")

    print(f"\nCycle time = {format_time(result.total_time_seconds)}")
    l1, l2 = split_side_times(result.operations)
    if l2 > 0:
        print(f"L1: {format_time(l1)} | L2: {format_time(l2)}")

    density = detect_density(result.material)
    cost = cost_breakdown(
        result.stock_diameter, result.stock_inner_diameter, result.stock_length,
        density, result.total_time_seconds, DEFAULT_HOURLY_RATE, DEFAULT_MATERIAL_PRICE_KG,
    )
    print(f"Weight = {format_weight(cost['weight'])} kg (density {density} g/cm3)")
    print(f"Machining = {cost['machining_cost']:.0f} | Material = {cost['material_cost']:.0f} "
          f"| Total = {format_cost(cost['total_cost'])} TWD")
    if result.notes:
        print(f"\nNotes: {result.notes}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
