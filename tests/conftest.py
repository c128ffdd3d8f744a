"""
Pytest configuration for the lathe estimator tests.
"""

import base64
import io
import json
from types import SimpleNamespace

import pytest
from PIL import Image

from estimator.models import EstimationResult
from web_app import app as flask_app


SAMPLE_RESULT = {
    "partName": "傳動軸",
    "material": "S45C 中碳鋼",
    "stockDiameter": "30 mm",
    "stockInnerDiameter": "0",
    "stockLength": "100 mm",
    "difficultyRating": "Medium",
    "notes": "注意同心度",
    "totalTimeSeconds": 105,
    "operations": [
        {"name": "車端面", "description": "端面車削", "toolType": "CNMG 432 外徑刀",
         "estimatedTimeSeconds": 10, "rpm": 1000, "feedRate": 0.2},
        {"name": "外徑粗車", "description": "外徑粗加工", "toolType": "CNMG 432 外徑刀",
         "estimatedTimeSeconds": 60, "rpm": 1000, "feedRate": 0.2},
        {"name": "掉頭 (Flip Part)", "description": "人工掉頭", "toolType": "無",
         "estimatedTimeSeconds": 15},
        {"name": "OP20 外徑精車", "description": "背面精車", "toolType": "VNMG 外徑刀",
         "estimatedTimeSeconds": 20, "rpm": 1500, "feedRate": 0.1},
    ],
}


def make_png(size=(40, 20), color=(200, 30, 30, 255), mode="RGBA") -> bytes:
    buf = io.BytesIO()
    Image.new(mode, size, color).save(buf, format="PNG")
    return buf.getvalue()


def png_data_url(size=(40, 20)) -> str:
    return "data:image/png;base64," + base64.b64encode(make_png(size)).decode("ascii")


class FakeOpenAI:
    """Stands in for openai.OpenAI; replies with whatever the test sets."""

    def __init__(self, controller, **kwargs):
        controller.client_kwargs.append(kwargs)
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=controller.create))


class FakeOpenAIController:
    def __init__(self):
        self.reply = json.dumps(SAMPLE_RESULT, ensure_ascii=False)
        self.calls = []
        self.client_kwargs = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if isinstance(self.reply, Exception):
            raise self.reply
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    def factory(self, **kwargs):
        return FakeOpenAI(self, **kwargs)


@pytest.fixture
def fake_openai(monkeypatch):
    controller = FakeOpenAIController()
    monkeypatch.setattr("estimator.client.OpenAI", controller.factory)
    return controller


@pytest.fixture
def sample_result():
    return EstimationResult.model_validate(SAMPLE_RESULT)


@pytest.fixture
def settings():
    return {
        "GEMINI_API_KEY": "",
        "API_KEY": "",
        "GEMINI_MODEL": "gemini-2.5-flash",
        "GEMINI_BASE_URL": "https://example.invalid/v1beta/openai/",
        "REQUEST_TIMEOUT": 5.0,
    }


@pytest.fixture
def app(tmp_path, monkeypatch):
    """Flask app writing history into a temp dir, with no server-side key."""
    monkeypatch.setitem(flask_app.config, "TESTING", True)
    monkeypatch.setitem(flask_app.config, "HISTORY_PATH", str(tmp_path / "history.json"))
    monkeypatch.setitem(flask_app.config, "GEMINI_API_KEY", "")
    monkeypatch.setitem(flask_app.config, "API_KEY", "")
    return flask_app


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client
