import pytest


@pytest.fixture(autouse=True)
def _isolated_log(tmp_path, monkeypatch):
    monkeypatch.setenv("CAPTURE_GUARD_LOG_PATH", str(tmp_path / "logs" / "capture-guard.log"))
