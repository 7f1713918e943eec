"""
Unit tests for the command line interface.

Browser commands run against FakeDriver by swapping out the driver
session; config commands only touch a temporary store file.
"""

from contextlib import contextmanager
import json

import pytest
from click.testing import CliRunner

from relocator import __version__
from relocator.cli.main import cli
from relocator.layers.sense.classifier import ElementType
from relocator.layers.sense.scanner import SavedConfigEntry
from relocator.persistence.config_store import ConfigStore


PAGE = """
<form id="f">
  <div class="bh-form-group" id="jqxWidget100001">
    <label>City</label><input name="city" value="Paris">
  </div>
  <div class="bh-form-group" id="jqxWidget100002">
    <label>Zip</label><input name="zip" value="75001">
  </div>
</form>
"""


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def store_path(tmp_path):
    return str(tmp_path / "config.json")


@pytest.fixture
def fake_browser(monkeypatch, make_driver):
    """Serve PAGE to every browser command."""
    driver = make_driver(PAGE)
    opened = []

    @contextmanager
    def fake_session(**kwargs):
        opened.append(kwargs)
        yield driver

    monkeypatch.setattr("relocator.core.driver_factory.driver_session", fake_session)
    driver.opened = opened
    return driver


def seed(store_path):
    entry = SavedConfigEntry(
        label="City",
        name="city",
        container_selector="form#f div.bh-form-group:nth-child(1)",
        fallback_name="city",
        placeholder=None,
        element_type=ElementType.INPUT,
        index=0,
    )
    ConfigStore(store_path).save([entry])
    return entry


class TestConfigCommands:
    """Commands that only work on the store file."""

    def test_version(self, runner):
        result = runner.invoke(cli, ["version"])
        assert result.exit_code == 0
        assert f"Relocator v{__version__}" in result.output

    def test_show_empty(self, runner, store_path):
        result = runner.invoke(cli, ["--store", store_path, "show"])
        assert result.exit_code == 0
        assert "No saved configuration" in result.output

    def test_show_entries(self, runner, store_path):
        seed(store_path)
        result = runner.invoke(cli, ["--store", store_path, "show"])
        assert result.exit_code == 0
        assert "City" in result.output

    def test_export_to_stdout(self, runner, store_path):
        seed(store_path)

        result = runner.invoke(cli, ["--store", store_path, "export"])

        assert result.exit_code == 0
        assert json.loads(result.output)[0]["fallbackName"] == "city"

    def test_export_to_file(self, runner, store_path, tmp_path):
        seed(store_path)
        target = tmp_path / "out.json"

        result = runner.invoke(cli, ["--store", store_path, "export", "-o", str(target)])

        assert result.exit_code == 0
        assert json.loads(target.read_text(encoding="utf-8"))[0]["label"] == "City"

    def test_export_without_config_fails(self, runner, store_path):
        result = runner.invoke(cli, ["--store", store_path, "export"])
        assert result.exit_code == 1

    def test_import_from_stdin(self, runner, store_path):
        text = json.dumps([{"label": "Zip", "fallbackName": "zip", "elementType": "input"}])

        result = runner.invoke(cli, ["--store", store_path, "import", "-"], input=text)

        assert result.exit_code == 0
        assert [e.fallback_name for e in ConfigStore(store_path).load()] == ["zip"]

    @pytest.mark.parametrize("text", ["not json", '{"a": 1}', "[1]"])
    def test_import_rejects_invalid(self, runner, store_path, text):
        result = runner.invoke(cli, ["--store", store_path, "import", "-"], input=text)

        assert result.exit_code == 1
        assert "Import failed" in result.output
        assert not ConfigStore(store_path).exists()

    def test_clear_config(self, runner, store_path):
        seed(store_path)

        first = runner.invoke(cli, ["--store", store_path, "clear-config"])
        second = runner.invoke(cli, ["--store", store_path, "clear-config"])

        assert "cleared" in first.output
        assert "Nothing to clear" in second.output
        assert not ConfigStore(store_path).exists()

    def test_doctor_reports_ready(self, runner, store_path, monkeypatch):
        seed(store_path)
        monkeypatch.setattr("relocator.cli.main.shutil.which", lambda name: None)

        result = runner.invoke(cli, ["--store", store_path, "doctor"])

        assert result.exit_code == 0, result.output
        assert "Not on PATH" in result.output
        assert "Relocator is ready" in result.output

    def test_doctor_flags_unreadable_store(self, runner, store_path):
        with open(store_path, "w", encoding="utf-8") as f:
            f.write("{not json")

        result = runner.invoke(cli, ["--store", store_path, "doctor"])

        assert result.exit_code == 1
        assert "1 problem(s) found" in result.output


class TestBrowserCommands:
    """Commands that open a page."""

    def test_scan_lists_elements(self, runner, store_path, fake_browser):
        result = runner.invoke(cli, ["--store", store_path, "scan", "https://example.com/form"])

        assert result.exit_code == 0, result.output
        assert "elements found" in result.output
        assert "city" in result.output
        assert fake_browser.current_url == "https://example.com/form"
        # Overlays are removed when the command finishes
        assert fake_browser.overlay_nodes() == []

    def test_save_writes_store(self, runner, store_path, fake_browser):
        result = runner.invoke(cli, [
            "--store", store_path, "save", "https://example.com/form", "-i", "1",
        ])

        assert result.exit_code == 0, result.output
        entries = ConfigStore(store_path).load()
        assert [e.fallback_name for e in entries] == ["zip"]
        assert entries[0].container_selector == "form#f div.bh-form-group:nth-child(2)"

    def test_extract_json(self, runner, store_path, fake_browser):
        seed(store_path)

        result = runner.invoke(cli, [
            "--store", store_path, "extract", "https://example.com/form", "--json",
        ])

        assert result.exit_code == 0, result.output
        assert '"value": "Paris"' in result.output
        assert '"foundBy": "container+label"' in result.output

    def test_extract_without_config_fails(self, runner, store_path, fake_browser):
        result = runner.invoke(cli, ["--store", store_path, "extract", "https://example.com/form"])

        assert result.exit_code == 1
        assert fake_browser.opened == []

    def test_replica_to_file(self, runner, store_path, fake_browser, tmp_path):
        seed(store_path)
        target = tmp_path / "layout.json"

        result = runner.invoke(cli, [
            "--store", store_path, "replica", "https://example.com/form", "-o", str(target),
        ])

        assert result.exit_code == 0, result.output
        layout = json.loads(target.read_text(encoding="utf-8"))
        assert layout[0]["configIndex"] == 0
        assert layout[0]["value"] == "Paris"
        assert fake_browser.opened[0]["headless"] is True
