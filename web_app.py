from __future__ import annotations

import logging

from flask import Flask, request, render_template_string, redirect, url_for, session, abort
from openai import OpenAIError
from pydantic import ValidationError

from estimator.client import analyze_blueprint, classify_error
from estimator.config import get_config
from estimator.data import (
    COMMON_MATERIALS,
    MATERIAL_AUTO,
    MATERIAL_CUSTOM,
    SIDE_MODES,
    STRATEGIES,
    SPINDLE_MODES,
    DEFAULT_SIDE_MODE,
    DEFAULT_STRATEGY,
    DEFAULT_SPINDLE_MODE,
    DEFAULT_HOURLY_RATE,
    DEFAULT_MATERIAL_PRICE_KG,
)
from estimator.errors import EstimatorError
from estimator.formulas import (
    cost_breakdown, detect_density, parse_amount,
    update_operation_param, update_operation_text,
    split_side_times, time_shares,
    format_time, format_time_ago, format_param, format_weight, format_cost,
    difficulty_label, has_inner_diameter, format_inner_diameter,
)
from estimator.history import HistoryStore, now_ms
from estimator.imaging import file_to_image_part, guess_mime_type, to_data_url
from estimator.models import AnalysisConfig, EstimationResult

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config.from_object(get_config())


# ----------------------------
# Helpers
# ----------------------------
FORM_DEFAULTS = {
    "material_select": MATERIAL_AUTO,
    "custom_material": "",
    "od": "",
    "id": "",
    "length": "",
    "sides": DEFAULT_SIDE_MODE,
    "strategy": DEFAULT_STRATEGY,
    "spindle_mode": DEFAULT_SPINDLE_MODE,
    "user_remarks": "",
}

def history_store() -> HistoryStore:
    return HistoryStore(app.config["HISTORY_PATH"], app.config["HISTORY_MAX_ITEMS"])

def read_config_form(form) -> dict:
    values = {key: (form.get(key) or default).strip() for key, default in FORM_DEFAULTS.items()}
    if values["material_select"] not in COMMON_MATERIALS:
        values["material_select"] = MATERIAL_AUTO
    if values["sides"] not in SIDE_MODES:
        values["sides"] = DEFAULT_SIDE_MODE
    if values["strategy"] not in STRATEGIES:
        values["strategy"] = DEFAULT_STRATEGY
    if values["spindle_mode"] not in SPINDLE_MODES:
        values["spindle_mode"] = DEFAULT_SPINDLE_MODE
    return values

def config_from_values(values: dict, api_key: str = "") -> AnalysisConfig:
    selection = values["material_select"]
    if selection == MATERIAL_CUSTOM:
        material = values["custom_material"]
    elif selection == MATERIAL_AUTO:
        material = ""
    else:
        material = selection

    return AnalysisConfig(
        material=material,
        od=values["od"],
        id=values["id"],
        length=values["length"],
        sides=values["sides"],
        strategy=values["strategy"],
        spindle_mode=values["spindle_mode"],
        user_remarks=values["user_remarks"],
        api_key=api_key,
    )

def apply_form_edits(original: EstimationResult, current: EstimationResult, form) -> EstimationResult:
    """
    Replay what the user changed on the result page onto `current`.
    rpm/feed fields only count as edits when they differ from what was shown.
    """
    if "part_name" in form:
        current = current.model_copy(update={"part_name": form.get("part_name", "")})
    if "notes" in form:
        current = current.model_copy(update={"notes": form.get("notes", "")})

    for i in range(len(current.operations)):
        for field in ("name", "description"):
            key = f"op_{field}_{i}"
            if key in form and form[key] != getattr(current.operations[i], field):
                current = update_operation_text(current, i, field, form[key])

        for field, attr in (("rpm", "rpm"), ("feedRate", "feed_rate")):
            key = f"op_{field}_{i}"
            if key not in form:
                continue
            shown = format_param(getattr(current.operations[i], attr))
            if form[key].strip() != shown:
                current = update_operation_param(original, current, i, field, form[key])

    return current

def render_home(values: dict | None = None, error: str | None = None, status: int = 200):
    values = values or {**FORM_DEFAULTS, **session.get("last_form", {})}
    now = now_ms()
    history = [
        {
            "id": item.id,
            "part_name": item.result.part_name,
            "material": item.result.material,
            "thumbnail": item.thumbnail,
            "ago": format_time_ago(item.timestamp, now),
            "total": format_time(item.result.total_time_seconds),
        }
        for item in history_store().get_history()
    ]
    return render_template_string(
        HOME_TEMPLATE,
        materials=COMMON_MATERIALS,
        material_custom=MATERIAL_CUSTOM,
        side_modes=SIDE_MODES,
        strategies=STRATEGIES,
        spindle_modes=SPINDLE_MODES,
        form=values,
        history=history,
        error=error,
    ), status

def render_estimate(
    original: EstimationResult,
    current: EstimationResult,
    history_id: str = "",
    preview: str = "",
    hourly_rate: float = DEFAULT_HOURLY_RATE,
    price_kg: float = DEFAULT_MATERIAL_PRICE_KG,
    density: float | None = None,
):
    detected = detect_density(current.material)
    if density is None:
        density = detected

    cost = cost_breakdown(
        current.stock_diameter,
        current.stock_inner_diameter,
        current.stock_length,
        density,
        current.total_time_seconds,
        hourly_rate,
        price_kg,
    )
    l1, l2 = split_side_times(current.operations)

    stock = f"Ø{current.stock_diameter}"
    if has_inner_diameter(current.stock_inner_diameter):
        stock += f" x {format_inner_diameter(current.stock_inner_diameter)}"
    stock += f" x {current.stock_length}L"

    rows = [
        {
            "index": i,
            "number": f"{i + 1:02d}",
            "name": op.name,
            "description": op.description,
            "tool": op.tool_type,
            "rpm": format_param(op.rpm),
            "feed": format_param(op.feed_rate),
            "seconds": op.estimated_time_seconds,
        }
        for i, op in enumerate(current.operations)
    ]

    return render_template_string(
        RESULT_TEMPLATE,
        result=current,
        original_json=original.model_dump_json(by_alias=True),
        current_json=current.model_dump_json(by_alias=True),
        history_id=history_id,
        preview=preview,
        stock=stock,
        difficulty=difficulty_label(current.difficulty_rating),
        difficulty_class=(current.difficulty_rating or "").lower(),
        total=format_time(current.total_time_seconds),
        l1=format_time(l1),
        l2=format_time(l2),
        show_split=l2 > 0,
        rows=rows,
        shares=time_shares(current.operations),
        hourly_rate=format_param(hourly_rate) or "0",
        price_kg=format_param(price_kg) or "0",
        density=format_param(density) or "0",
        density_auto=(density == detected),
        weight=format_weight(cost["weight"]),
        machining_cost=f"{cost['machining_cost']:.0f}",
        material_cost=f"{cost['material_cost']:.0f}",
        total_cost=format_cost(cost["total_cost"]),
    )


# ----------------------------
# Templates
# ----------------------------
BASE_STYLE = """
<style>
  body { font-family: Arial, "Microsoft JhengHei", sans-serif; margin:18px; color:#1f2933; }
  .card { max-width:960px; margin:0 auto 14px; padding:18px; border:1px solid #ddd; border-radius:14px; }
  h1 { font-size:22px; margin:0 0 12px; }
  h3 { font-size:16px; margin:0 0 10px; }
  label { display:block; margin-top:12px; font-size:14px; }
  input, select, textarea { width:100%; box-sizing:border-box; padding:10px; font-size:16px; margin-top:6px; border-radius:10px; border:1px solid #ccc; }
  button { padding:12px 16px; font-size:16px; margin-top:12px; border-radius:12px; border:none; cursor:pointer; background:#f6f6f6; }
  button.primary { background:#f59e0b; color:#fff; width:100%; }
  .row { display:flex; gap:12px; }
  .row > div { flex:1; }
  .choices label { display:flex; gap:8px; align-items:flex-start; padding:8px 10px; border:1px solid #ddd; border-radius:10px; }
  .choices input { width:auto; margin:2px 0 0; }
  .small { font-size:13px; color:#52606d; }
  .out { margin-top:14px; padding:12px; border-radius:12px; background:#f6f6f6; }
  .danger { background:#ffecec; border:1px solid #ffb3b3; }
  .pill { display:inline-block; padding:4px 10px; border-radius:999px; background:#eee; font-size:13px; margin-right:6px; }
  .pill.high { background:#fee2e2; } .pill.medium { background:#fef3c7; } .pill.low { background:#dcfce7; }
</style>
"""

HOME_TEMPLATE = """
<!doctype html>
<html>
<head>
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>AI Lathe Estimator</title>
""" + BASE_STYLE + """
<style>
  .history { display:flex; gap:10px; align-items:center; padding:8px 0; border-top:1px solid #eee; }
  .history img { width:64px; height:48px; object-fit:cover; border-radius:6px; background:#eee; }
  .history .grow { flex:1; }
  .history form button { margin:0; padding:6px 10px; font-size:13px; }
  .drop { border:2px dashed #ccc; border-radius:10px; padding:14px; text-align:center; }
  .drop.over { border-color:#2563eb; background:#eff6ff; }
</style>
<script>
  function toggleCustom() {
    const sel = document.getElementById("material_select");
    document.getElementById("custom_material_box").style.display =
      sel.value === "{{ material_custom }}" ? "block" : "none";
  }
  function setupDropZone() {
    const zone = document.getElementById("drop_zone");
    const input = document.getElementById("blueprint");
    ["dragenter", "dragover"].forEach(function (type) {
      zone.addEventListener(type, function (e) { e.preventDefault(); zone.classList.add("over"); });
    });
    ["dragleave", "drop"].forEach(function (type) {
      zone.addEventListener(type, function (e) { e.preventDefault(); zone.classList.remove("over"); });
    });
    zone.addEventListener("drop", function (e) {
      if (e.dataTransfer.files.length) input.files = e.dataTransfer.files;
    });
  }
  function startAnalysis(form) {
    const btn = document.getElementById("analyze_btn");
    btn.disabled = true;
    btn.textContent = "AI 正在分析圖面幾何特徵與切削參數...";
    return true;
  }
</script>
</head>
<body onload="toggleCustom(); setupDropZone()">

<div class="card">
  <h1>AI 車床工時估算</h1>

  {% if error %}
    <div class="out danger"><b>分析失敗:</b> {{ error }}</div>
  {% endif %}

  <form method="post" action="{{ url_for('analyze') }}" enctype="multipart/form-data" onsubmit="return startAnalysis(this)">
    <label>工程圖 (PNG, JPG, WEBP, PDF，最大 10MB)</label>
    <div id="drop_zone" class="drop">
      <input type="file" id="blueprint" name="blueprint" accept="image/png,image/jpeg,image/webp,application/pdf" required>
      <div class="small">或將檔案拖曳到此處</div>
    </div>

    <div class="row">
      <div>
        <label>選擇工件材質</label>
        <select id="material_select" name="material_select" onchange="toggleCustom()">
          {% for m in materials %}
            <option value="{{m}}" {% if m==form.material_select %}selected{% endif %}>{{m}}</option>
          {% endfor %}
        </select>
        <div id="custom_material_box">
          <input name="custom_material" placeholder="輸入材質 (例如: S15C)" value="{{ form.custom_material }}">
        </div>

        <label>毛胚尺寸 (Raw Stock)</label>
        <div class="row">
          <div><span class="small">外徑 OD (mm)</span><input name="od" inputmode="decimal" value="{{ form.od }}" placeholder="mm"></div>
          <div><span class="small">內徑 ID (mm)</span><input name="id" inputmode="decimal" value="{{ form.id }}" placeholder="0"></div>
          <div><span class="small">長度 L (mm)</span><input name="length" inputmode="decimal" value="{{ form.length }}" placeholder="mm"></div>
        </div>

        <label>額外備註 / 特別指示</label>
        <textarea name="user_remarks" rows="4" placeholder="例如：中心孔已經預鑽、溝槽不需要倒角、公差要求嚴格...">{{ form.user_remarks }}</textarea>
      </div>

      <div>
        <label>加工方向</label>
        <div class="choices">
          {% for key, opt in side_modes.items() %}
            <label><input type="radio" name="sides" value="{{key}}" {% if key==form.sides %}checked{% endif %}>
              <span><b>{{opt.label}}</b><br><span class="small">{{opt.desc}}</span></span></label>
          {% endfor %}
        </div>

        <label>加工策略</label>
        <div class="choices">
          {% for key, opt in strategies.items() %}
            <label><input type="radio" name="strategy" value="{{key}}" {% if key==form.strategy %}checked{% endif %}>
              <span><b>{{opt.label}}</b><br><span class="small">{{opt.desc}}</span></span></label>
          {% endfor %}
        </div>

        <label>主軸轉速模式</label>
        <div class="choices">
          {% for key, opt in spindle_modes.items() %}
            <label><input type="radio" name="spindle_mode" value="{{key}}" {% if key==form.spindle_mode %}checked{% endif %}>
              <span><b>{{opt.label}}</b><br><span class="small">{{opt.desc}}</span></span></label>
          {% endfor %}
        </div>
      </div>
    </div>

    <label>Gemini API Key (選填，未填則使用伺服器環境變數)</label>
    <input type="password" name="api_key" autocomplete="off">

    <button id="analyze_btn" class="primary" type="submit">開始 AI 分析</button>
  </form>
</div>

{% if history %}
<div class="card">
  <div class="row">
    <div><h3>最近分析紀錄</h3></div>
    <div style="text-align:right">
      <form method="post" action="{{ url_for('clear_history') }}"><button type="submit">清除全部</button></form>
    </div>
  </div>
  {% for h in history %}
    <div class="history">
      {% if h.thumbnail %}<img src="{{ h.thumbnail }}" alt="">{% else %}<img alt="">{% endif %}
      <div class="grow">
        <a href="{{ url_for('open_history', item_id=h.id) }}"><b>{{ h.part_name }}</b></a>
        <div class="small">{{ h.material }} · {{ h.total }} · {{ h.ago }}</div>
      </div>
      <form method="post" action="{{ url_for('delete_history', item_id=h.id) }}"><button type="submit">刪除</button></form>
    </div>
  {% endfor %}
</div>
{% endif %}

<div class="small" style="text-align:center">AI generation results for reference only.</div>
</body>
</html>
"""

RESULT_TEMPLATE = """
<!doctype html>
<html>
<head>
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{{ result.part_name }} - AI Lathe Estimator</title>
""" + BASE_STYLE + """
<style>
  .head { display:flex; justify-content:space-between; gap:12px; align-items:flex-start; }
  .part-name { font-size:22px; font-weight:bold; border:none; padding:4px 0; }
  .cycle { text-align:right; }
  .cycle .big { font-size:30px; font-weight:bold; }
  .grid { display:grid; grid-template-columns:1fr 1fr; gap:14px; }
  .preview img { max-width:100%; border-radius:10px; }
  table { width:100%; border-collapse:collapse; }
  th, td { text-align:left; vertical-align:top; padding:8px; border-bottom:1px solid #eee; }
  td input, td textarea { font-size:14px; padding:6px; }
  .param { display:flex; gap:6px; align-items:center; }
  .param input { width:90px; }
  .bar { height:8px; background:#f59e0b; border-radius:4px; }
  .share { margin-top:6px; font-size:13px; }
  @media print {
    .no-print { display:none !important; }
    .card { border:none; }
    tr { page-break-inside:avoid; break-inside:avoid; }
    input, textarea { border:none !important; background:transparent !important; resize:none !important; padding:0 !important; }
  }
</style>
</head>
<body>

<form method="post" action="{{ url_for('estimate') }}">
  <input type="hidden" name="original_json" value="{{ original_json }}">
  <input type="hidden" name="current_json" value="{{ current_json }}">
  <input type="hidden" name="history_id" value="{{ history_id }}">

  <div class="card">
    <div class="head">
      <div>
        <input class="part-name" name="part_name" value="{{ result.part_name }}" placeholder="未命名零件">
        <span class="pill {{ difficulty_class }}">難度: {{ difficulty }}</span>
        <span class="pill">{{ result.material }}</span>
        <span class="pill">{{ stock }}</span>
      </div>
      <div class="cycle">
        <div class="small">總加工週期 CYCLE TIME</div>
        <div class="big">{{ total }}</div>
        {% if show_split %}
          <div class="small">L1: {{ l1 }} | L2: {{ l2 }}</div>
        {% endif %}
      </div>
    </div>
    <div class="no-print">
      <a href="{{ url_for('home') }}"><button type="button">重新分析</button></a>
      <button type="button" onclick="window.print()">列印報表</button>
      <button type="submit">重新計算</button>
    </div>
  </div>

  <div class="card grid">
    <div class="preview">
      <h3>圖面預覽</h3>
      {% if preview %}<img src="{{ preview }}" alt="blueprint">{% else %}<div class="small">無預覽圖</div>{% endif %}
    </div>

    <div>
      <h3>成本估算儀表板</h3>
      <div class="row">
        <div><label>工時費率 (元/hr)</label><input name="hourly_rate" inputmode="decimal" value="{{ hourly_rate }}"></div>
        <div><label>材料單價 (元/kg)</label><input name="price_kg" inputmode="decimal" value="{{ price_kg }}"></div>
      </div>
      <label>材料密度 (g/cm³) {% if density_auto %}<span class="small">(自動偵測)</span>{% else %}<span class="small">(自訂)</span>{% endif %}</label>
      <input name="density" inputmode="decimal" value="{{ density }}">
      <div class="out">
        <div><b>毛胚重量:</b> {{ weight }} kg</div>
        <div><b>加工費:</b> {{ machining_cost }} 元</div>
        <div><b>材料費:</b> {{ material_cost }} 元</div>
        <div><b>預估總成本:</b> {{ total_cost }} 元</div>
      </div>
    </div>

    <div>
      <h3>時間佔比分析</h3>
      {% for s in shares %}
        <div class="share">{{ s.name }} · {{ s.seconds }} s ({{ '%.1f' % s.percent }}%)
          <div class="bar" style="width: {{ '%.1f' % s.percent }}%"></div>
        </div>
      {% endfor %}
    </div>

    <div>
      <h3>工程註記</h3>
      <textarea name="notes" rows="6" placeholder="在此輸入工程註記...">{{ result.notes }}</textarea>
    </div>
  </div>

  <div class="card">
    <h3>工序明細表</h3>
    <table>
      <thead>
        <tr><th>工序 / 刀具</th><th>加工說明 &amp; 參數</th><th>預估時間</th></tr>
      </thead>
      <tbody>
        {% for r in rows %}
          <tr>
            <td>
              <span class="small">{{ r.number }}</span>
              <input name="op_name_{{ r.index }}" value="{{ r.name }}">
              <div class="small">{{ r.tool }}</div>
            </td>
            <td>
              <textarea name="op_description_{{ r.index }}" rows="2">{{ r.description }}</textarea>
              <div class="param">
                S <input name="op_rpm_{{ r.index }}" inputmode="decimal" value="{{ r.rpm }}" placeholder="-">
                F <input name="op_feedRate_{{ r.index }}" inputmode="decimal" value="{{ r.feed }}" placeholder="-">
              </div>
            </td>
            <td><b>{{ r.seconds }} s</b></td>
          </tr>
        {% endfor %}
      </tbody>
    </table>
    <div class="no-print"><button type="submit" class="primary">重新計算</button></div>
  </div>
</form>

<div class="small" style="text-align:center">AI generation results for reference only.</div>
</body>
</html>
"""


# ----------------------------
# Routes
# ----------------------------
@app.route("/")
def home():
    return render_home()


@app.route("/analyze", methods=["POST"])
def analyze():
    values = read_config_form(request.form)
    session["last_form"] = values

    upload = request.files.get("blueprint")
    if upload is None or not upload.filename:
        return render_home(values, error="請選擇要分析的圖面檔案。")

    config = config_from_values(values, api_key=request.form.get("api_key", ""))
    mime_type = guess_mime_type(upload.filename, upload.mimetype)

    try:
        image_b64, mime_type = file_to_image_part(upload.read(), mime_type)
        result = analyze_blueprint(image_b64, mime_type, config, settings=app.config)
    except (EstimatorError, OpenAIError) as e:
        logger.error("Analysis Error: %s", e)
        return render_home(values, error=classify_error(e))

    data_url = to_data_url(image_b64, mime_type)
    item = history_store().save_history_item(result, config, data_url)

    return render_estimate(result, result, history_id=item.id if item else "", preview=data_url)


@app.route("/estimate", methods=["POST"])
def estimate():
    try:
        original = EstimationResult.model_validate_json(request.form.get("original_json", ""))
        current = EstimationResult.model_validate_json(request.form.get("current_json", ""))
    except ValidationError:
        abort(400)

    current = apply_form_edits(original, current, request.form)

    history_id = request.form.get("history_id", "")
    item = history_store().get_history_item(history_id) if history_id else None

    density_raw = request.form.get("density")
    density = parse_amount(density_raw) if density_raw is not None else None

    return render_estimate(
        original,
        current,
        history_id=item.id if item else "",
        preview=item.preview_image if item else "",
        hourly_rate=parse_amount(request.form.get("hourly_rate", DEFAULT_HOURLY_RATE)),
        price_kg=parse_amount(request.form.get("price_kg", DEFAULT_MATERIAL_PRICE_KG)),
        density=density,
    )


@app.route("/history/<item_id>")
def open_history(item_id):
    item = history_store().get_history_item(item_id)
    if item is None:
        abort(404)
    return render_estimate(item.result, item.result, history_id=item.id, preview=item.preview_image)


@app.route("/history/<item_id>/delete", methods=["POST"])
def delete_history(item_id):
    history_store().delete_history_item(item_id)
    return redirect(url_for("home"))


@app.route("/history/clear", methods=["POST"])
def clear_history():
    history_store().clear_history()
    return redirect(url_for("home"))


@app.errorhandler(413)
def upload_too_large(e):
    limit_mb = app.config["MAX_CONTENT_LENGTH"] // (1024 * 1024)
    return render_home(error=f"檔案過大 (最大 {limit_mb}MB)。", status=413)


if __name__ == "__main__":
    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.run(debug=app.config["DEBUG"])
