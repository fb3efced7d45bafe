"""Tests for the crmdeck command line."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from crmdeck import __version__
from crmdeck.cli import _api_resource, app
from crmdeck.config import CrmdeckConfig
from crmdeck.core.errors import ConfigError

runner = CliRunner()


class TestVersion:
    def test_version(self) -> None:
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert f"crmdeck {__version__}" in result.output


@pytest.mark.usefixtures("restore_crmdeck_loggers")
class TestRender:
    @pytest.fixture(autouse=True)
    def _workdir(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)

    def test_html(self) -> None:
        result = runner.invoke(app, ["render", "--view", "grid"])
        assert result.exit_code == 0, result.output
        assert "crmdeck-grid" in result.output
        assert "Showing 10 of 24 items" in result.output

    def test_summary(self) -> None:
        result = runner.invoke(app, ["render", "--summary", "--search", "acme"])
        assert result.exit_code == 0, result.output
        assert "Showing 3 of 3 items" in result.output
        assert "Page 1 of 1" in result.output

    def test_per_page_and_page(self) -> None:
        result = runner.invoke(app, ["render", "--summary", "--per-page", "5", "--page", "2"])
        assert result.exit_code == 0, result.output
        assert "Showing 5 of 24 items" in result.output
        assert "Page 2 of 5" in result.output

    def test_invalid_view(self) -> None:
        result = runner.invoke(app, ["render", "--view", "timeline"])
        assert result.exit_code != 0

    def test_invalid_config(self, tmp_path: Path) -> None:
        config = tmp_path / "crmdeck.toml"
        config.write_text("[views]\nper_page = 0\n")
        result = runner.invoke(app, ["render", "--config", str(config)])
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output

    def test_logs_to_project_log_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["render", "--summary"])
        assert result.exit_code == 0, result.output
        log_file = tmp_path / ".crmdeck" / "logs" / "crmdeck.log"
        assert "crmdeck logging initialized" in log_file.read_text()


@pytest.mark.usefixtures("restore_crmdeck_loggers")
class TestServe:
    def _config(self, tmp_path: Path, extra: str = "") -> Path:
        config = tmp_path / "crmdeck.toml"
        config.write_text(f'[logging]\nlog_dir = "{(tmp_path / "logs").as_posix()}"\n{extra}')
        return config

    def test_demo(self, tmp_path: Path) -> None:
        with patch("uvicorn.run") as run:
            result = runner.invoke(
                app, ["serve", "--config", str(self._config(tmp_path)), "--port", "9000"]
            )
        assert result.exit_code == 0, result.output
        assert "Serving demo leads" in result.output
        run.assert_called_once()
        assert run.call_args.kwargs["port"] == 9000
        assert (tmp_path / "logs" / "crmdeck.log").exists()
        assert f"Logs: {tmp_path / 'logs' / 'crmdeck.log'}" in result.output

    def test_api(self, tmp_path: Path) -> None:
        with patch("uvicorn.run") as run:
            result = runner.invoke(
                app,
                [
                    "serve",
                    "--config",
                    str(self._config(tmp_path)),
                    "--api",
                    "https://crm.example.com/api",
                    "--endpoint",
                    "deals",
                    "--field",
                    "name:Deal",
                    "--group-by",
                    "status",
                    "--column",
                    "open:Open",
                    "--column",
                    "won",
                ],
            )
        assert result.exit_code == 0, result.output
        assert "Serving Deals from https://crm.example.com/api" in result.output
        fastapi_app = run.call_args.args[0]
        paths = {route.path for route in fastapi_app.routes}  # type: ignore[attr-defined]
        assert "/deals/board/drop" in paths

    def test_bad_field_option(self, tmp_path: Path) -> None:
        with patch("uvicorn.run") as run:
            result = runner.invoke(
                app,
                [
                    "serve",
                    "--config",
                    str(self._config(tmp_path)),
                    "--api",
                    "https://crm.example.com/api",
                    "--field",
                    ":Label",
                ],
            )
        assert result.exit_code == 1
        run.assert_not_called()


class TestApiResource:
    def test_requires_base_url(self) -> None:
        with pytest.raises(ConfigError, match="No API base URL"):
            _api_resource(CrmdeckConfig(), "deals", [], None, [])
