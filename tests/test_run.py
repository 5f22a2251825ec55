import runpy
from pathlib import Path

import uvicorn

RUN_PY = Path(__file__).resolve().parents[1] / "run.py"


def launch(monkeypatch):
    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
    runpy.run_path(str(RUN_PY), run_name="__main__")
    return calls[0]


def test_defaults(monkeypatch):
    for name in ("UVICORN_HOST", "HOST", "UVICORN_PORT", "PORT", "RELOAD"):
        monkeypatch.delenv(name, raising=False)
    app, kwargs = launch(monkeypatch)
    assert app == "examtrack.main:app"
    assert kwargs == {"host": "0.0.0.0", "port": 8000, "reload": False}


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("HOST", "127.0.0.1")
    monkeypatch.setenv("UVICORN_PORT", "9001")
    monkeypatch.setenv("PORT", "7000")
    monkeypatch.setenv("RELOAD", "1")
    monkeypatch.delenv("UVICORN_HOST", raising=False)
    _, kwargs = launch(monkeypatch)
    assert kwargs == {"host": "127.0.0.1", "port": 9001, "reload": True}


def test_bad_port_falls_back(monkeypatch):
    monkeypatch.setenv("UVICORN_PORT", "eighty")
    monkeypatch.delenv("PORT", raising=False)
    _, kwargs = launch(monkeypatch)
    assert kwargs["port"] == 8000
