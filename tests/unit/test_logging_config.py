from __future__ import annotations

from pathlib import Path

from citeflow.utils.logging_config import (
    LogFiles,
    Logger,
    clear_trace_id,
    get_trace_id,
    set_trace_id,
)


class TestLogger:
    def setup_method(self):
        Logger.reset()

    def teardown_method(self):
        Logger.reset()
        clear_trace_id()

    def test_writes_to_named_file_with_trace_id(self, tmp_path):
        Logger.init(base_dir=str(tmp_path))
        set_trace_id("run-test")

        Logger.info("fetched 3 chunks", file=LogFiles.INDEXER)

        content = (tmp_path / "indexer" / "indexer.log").read_text(encoding="utf-8")
        assert "[INFO] [run-test]" in content
        assert "fetched 3 chunks" in content
        assert "test_logging_config.py" in content

    def test_level_filters(self, tmp_path):
        Logger.init(level="warning", base_dir=str(tmp_path))

        Logger.info("hidden")
        Logger.error("shown")

        content = (tmp_path / "citeflow.log").read_text(encoding="utf-8")
        assert "hidden" not in content
        assert "shown" in content

    def test_env_configuration(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CITEFLOW_LOG_DIR", str(tmp_path))
        Logger.warning("from env", file=LogFiles.API)
        assert Path(tmp_path, "api", "api.log").exists()


def test_log_files():
    assert LogFiles.INDEXER == "indexer/indexer.log"
    assert LogFiles.ERROR == "errors/error.log"
    assert LogFiles.get("unknown") == "unknown/unknown.log"


def test_trace_ids():
    tid = set_trace_id()
    assert tid.startswith("run-")
    assert get_trace_id() == tid
    clear_trace_id()
    assert get_trace_id() is None
