import math

import pytest

from estimator.formulas import (
    parse_dim,
    parse_float,
    parse_amount,
    round_half_up,
    detect_density,
    stock_volume_mm3,
    stock_weight_kg,
    cost_breakdown,
    format_weight,
    format_cost,
    work_factor,
    update_operation_param,
    update_operation_text,
    split_side_times,
    time_shares,
    format_time,
    format_param,
    difficulty_label,
    has_inner_diameter,
    format_inner_diameter,
    format_time_ago,
)
from estimator.models import MachiningOperation


def op(name, seconds, rpm=None, feed=None):
    return MachiningOperation(
        name=name, description="", tool_type="", estimated_time_seconds=seconds, rpm=rpm, feed_rate=feed
    )


class TestParsing:
    @pytest.mark.parametrize("raw, expected", [
        ("Ø25.4 mm", 25.4),
        ("100L", 100.0),
        ("12.5.3", 12.5),
        (30, 30.0),
        ("", 0.0),
        (None, 0.0),
        ("abc", 0.0),
        (".", 0.0),
    ])
    def test_parse_dim(self, raw, expected):
        assert parse_dim(raw) == expected

    def test_parse_float_reads_leading_number(self):
        assert parse_float("12abc") == 12.0
        assert parse_float(" 0.15") == 0.15
        assert parse_float("abc") is None
        assert parse_float(None) is None

    def test_parse_amount_is_finite_and_non_negative(self):
        assert parse_amount("600") == 600.0
        assert parse_amount("-1") == 0.0
        assert parse_amount("1e999") == 0.0
        assert parse_amount("") == 0.0

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(0.25, 1) == 0.3
        assert round_half_up(4.2857, 1) == 4.3


class TestDensity:
    @pytest.mark.parametrize("material, expected", [
        ("S45C 中碳鋼", 7.85),
        ("sus304", 7.93),
        ("SUS316 不鏽鋼", 7.98),
        ("AL6061和5056鋁合金", 2.70),
        ("AL7075 航太鋁", 2.81),
        ("C3604 黃銅 (Brass)", 8.50),
        ("POM/ABS 工程塑膠", 1.41),
        ("FC/FCD 鑄鐵", 7.20),
        ("FCD450", 7.20),
        ("鋁合金", 2.7),
        ("Stainless steel", 7.93),
        ("紅銅", 8.5),
        ("plastic", 1.2),
        ("", 7.85),
        (None, 7.85),
    ])
    def test_detect_density(self, material, expected):
        assert detect_density(material) == expected


class TestCost:
    def test_solid_bar(self):
        volume = stock_volume_mm3(20, 0, 100)
        assert volume == pytest.approx(math.pi * 100 * 100)
        assert stock_weight_kg(volume, 7.85) == pytest.approx(0.246615, rel=1e-4)

    def test_tube_removes_bore(self):
        assert stock_volume_mm3(20, 10, 100) == pytest.approx(math.pi * 75 * 100)

    def test_bore_larger_than_od_is_empty(self):
        assert stock_volume_mm3(10, 20, 100) == 0.0

    def test_negative_density_rejected(self):
        with pytest.raises(ValueError):
            stock_weight_kg(1000, -1)

    def test_breakdown(self):
        cost = cost_breakdown("Ø20 mm", "0", "100 mm", 7.85, 360, 600, 45)
        assert cost["machining_cost"] == pytest.approx(60.0)
        assert cost["material_cost"] == pytest.approx(cost["weight"] * 45)
        assert cost["total_cost"] == pytest.approx(cost["machining_cost"] + cost["material_cost"])
        assert format_cost(cost["total_cost"]) == "72"

    def test_breakdown_with_unparseable_dims(self):
        cost = cost_breakdown(None, None, "abc", 7.85, 0, 600, 45)
        assert cost["weight"] == 0
        assert cost["total_cost"] == 0

    def test_format_weight(self):
        assert format_weight(0.005) == "< 0.01"
        assert format_weight(0) == "0.000"
        assert format_weight(1.23456) == "1.235"

    def test_format_cost_rounds_up_with_separators(self):
        assert format_cost(1234.01) == "1,235"
        assert format_cost(0) == "0"


class TestEditableEstimate:
    def test_work_factor_needs_all_three(self):
        assert work_factor(op("a", 60, 1000, 0.2)) == pytest.approx(12000)
        assert work_factor(op("a", 60, None, 0.2)) is None
        assert work_factor(op("a", 0, 1000, 0.2)) is None
        assert work_factor(None) is None

    def test_rpm_edit_rescales_time_and_total(self, sample_result):
        edited = update_operation_param(sample_result, sample_result, 1, "rpm", "2000")
        assert edited.operations[1].rpm == 2000
        assert edited.operations[1].estimated_time_seconds == 30.0
        assert edited.total_time_seconds == 75.0

    def test_repeated_edits_do_not_drift(self, sample_result):
        edited = update_operation_param(sample_result, sample_result, 1, "rpm", "2000")
        edited = update_operation_param(sample_result, edited, 1, "feedRate", "0.1")
        assert edited.operations[1].estimated_time_seconds == 60.0
        edited = update_operation_param(sample_result, edited, 1, "rpm", "1000")
        edited = update_operation_param(sample_result, edited, 1, "feedRate", "0.2")
        assert edited.operations[1].estimated_time_seconds == 60.0
        assert edited.total_time_seconds == 105.0

    def test_original_is_untouched(self, sample_result):
        update_operation_param(sample_result, sample_result, 1, "rpm", "2000")
        assert sample_result.operations[1].rpm == 1000
        assert sample_result.operations[1].estimated_time_seconds == 60

    def test_time_rounded_to_tenth(self):
        from estimator.models import EstimationResult
        original = EstimationResult(
            part_name="p", material="m", operations=[op("a", 10, 300, 0.1)],
            total_time_seconds=10, difficulty_rating="Low",
        )
        edited = update_operation_param(original, original, 0, "rpm", "700")
        assert edited.operations[0].estimated_time_seconds == 4.3

    def test_blank_sets_zero_and_keeps_time(self, sample_result):
        edited = update_operation_param(sample_result, sample_result, 0, "rpm", "")
        assert edited.operations[0].rpm == 0
        assert edited.operations[0].estimated_time_seconds == 10

    def test_garbage_clears_value(self, sample_result):
        edited = update_operation_param(sample_result, sample_result, 0, "feedRate", "abc")
        assert edited.operations[0].feed_rate is None
        assert edited.operations[0].estimated_time_seconds == 10

    def test_no_recompute_without_original_params(self, sample_result):
        edited = update_operation_param(sample_result, sample_result, 2, "rpm", "500")
        assert edited.operations[2].rpm == 500
        assert edited.operations[2].estimated_time_seconds == 15

    def test_unknown_field(self, sample_result):
        with pytest.raises(ValueError):
            update_operation_param(sample_result, sample_result, 0, "toolType", "x")

    def test_text_edit(self, sample_result):
        edited = update_operation_text(sample_result, 0, "name", "端面精車")
        assert edited.operations[0].name == "端面精車"
        assert sample_result.operations[0].name == "車端面"
        with pytest.raises(ValueError):
            update_operation_text(sample_result, 0, "rpm", "1")


class TestSplitSideTimes:
    def test_flip_goes_to_side_one(self, sample_result):
        assert split_side_times(sample_result.operations) == (85, 20)

    def test_single_side(self):
        assert split_side_times([op("車端面", 10), op("外徑粗車", 20.5)]) == (31, 0)

    def test_side_two_keyword_without_flip(self):
        ops = [op("OP10 端面", 10), op("背面 倒角", 5), op("切斷", 7)]
        assert split_side_times(ops) == (10, 12)

    def test_sub_spindle_transfer(self):
        ops = [op("外徑車削", 30), op("副主軸接料", 6), op("端面", 9)]
        assert split_side_times(ops) == (36, 9)


class TestReporting:
    def test_time_shares(self):
        shares = time_shares([op("a", 30), op("b", 10)])
        assert [s["percent"] for s in shares] == [75.0, 25.0]
        assert time_shares([op("a", 0)])[0]["percent"] == 0.0

    @pytest.mark.parametrize("seconds, expected", [
        (125, "2分 5秒"),
        (0, "0分 0秒"),
        (59.6, "0分 60秒"),
        (3600, "60分 0秒"),
    ])
    def test_format_time(self, seconds, expected):
        assert format_time(seconds) == expected

    def test_format_param(self):
        assert format_param(1200.0) == "1200"
        assert format_param(0.15) == "0.15"
        assert format_param(None) == ""
        assert format_param(0) == ""

    def test_difficulty_label(self):
        assert difficulty_label("High") == "困難"
        assert difficulty_label("Medium") == "中等"
        assert difficulty_label("Low") == "簡易"
        assert difficulty_label("Extreme") == "Extreme"

    @pytest.mark.parametrize("value, expected", [
        (None, False),
        ("", False),
        ("0", False),
        ("0.0", False),
        ("0 mm", False),
        ("ID 12 mm", True),
        ("12", True),
        ("abc", False),
    ])
    def test_has_inner_diameter(self, value, expected):
        assert has_inner_diameter(value) is expected

    def test_format_inner_diameter(self):
        assert format_inner_diameter("ID12 mm") == "12 mm"
        assert format_inner_diameter(None) == ""

    @pytest.mark.parametrize("delta_ms, expected", [
        (5_000, "剛剛"),
        (5 * 60_000, "5 分鐘前"),
        (3 * 3_600_000, "3 小時前"),
        (2 * 86_400_000, "2 天前"),
    ])
    def test_format_time_ago(self, delta_ms, expected):
        now = 1_700_000_000_000
        assert format_time_ago(now - delta_ms, now) == expected
