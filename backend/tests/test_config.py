"""
Test Configuration
測試環境變數設定
"""
import importlib

import pytest

import config


@pytest.fixture
def reload_config(monkeypatch):
    """修改環境變數後重新載入 config，結束時還原"""
    def _reload(**env):
        for name, value in env.items():
            monkeypatch.setenv(name, value)
        return importlib.reload(config)

    yield _reload
    monkeypatch.undo()
    importlib.reload(config)


def test_defaults(reload_config, monkeypatch):
    for name in ("BHM_DEFAULT_MINUTES", "BHM_MAX_MINUTES", "BHM_FETCH_TIMEOUT_SEC", "BHM_SOURCE_STRATEGIES"):
        monkeypatch.delenv(name, raising=False)
    cfg = reload_config()
    assert cfg.DEFAULT_MINUTES == 1
    assert cfg.MAX_MINUTES == 10
    assert cfg.FETCH_TIMEOUT_SEC == 10.0
    assert cfg.SOURCE_STRATEGIES == ["local", "drive"]


def test_numeric_values(reload_config):
    cfg = reload_config(BHM_MAX_MINUTES="30", BHM_FETCH_TIMEOUT_SEC="2.5")
    assert cfg.MAX_MINUTES == 30
    assert cfg.FETCH_TIMEOUT_SEC == 2.5


def test_malformed_numbers_fall_back_to_default(reload_config):
    cfg = reload_config(BHM_MAX_MINUTES="abc", BHM_FETCH_TIMEOUT_SEC="soon", BHM_MAX_FILE_COUNT="")
    assert cfg.MAX_MINUTES == 10
    assert cfg.FETCH_TIMEOUT_SEC == 10.0
    assert cfg.MAX_FILE_COUNT == 3


def test_source_strategies_list(reload_config):
    cfg = reload_config(BHM_SOURCE_STRATEGIES=" Drive , ,local ")
    assert cfg.SOURCE_STRATEGIES == ["drive", "local"]
