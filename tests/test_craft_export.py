"""Tests for craft_export module."""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from wwfm import craft_export
from wwfm.exceptions import ConfigError, MigrationError


def _response(body):
    resp = MagicMock()
    resp.json.return_value = body
    return resp


@pytest.fixture
def mock_settings(tmp_path):
    with patch("wwfm.craft_export.settings") as s:
        s.craft_url = "https://craft.example/"
        s.craft_token = "token"
        s.craft_export_dir = tmp_path / "export"
        yield s


def test_fetch_endpoint_follows_pagination(mock_settings):
    pages = [
        _response({"data": [{"id": 1}], "meta": {"pagination": {"links": {"next": "https://craft.example/api/x?page=2"}}}}),
        _response({"data": [{"id": 2}], "meta": {"pagination": {"total": 2}}}),
    ]
    with patch("wwfm.craft_export.requests.get", side_effect=pages) as mock_get:
        result = craft_export.fetch_endpoint("entries/radio-shows")

    assert result["data"] == [{"id": 1}, {"id": 2}]
    assert mock_get.call_args_list[0].args[0] == "https://craft.example/api/entries/radio-shows"
    assert mock_get.call_args_list[1].args[0] == "https://craft.example/api/x?page=2"
    assert mock_get.call_args.kwargs["headers"] == {"Authorization": "Bearer token"}


def test_fetch_endpoint_wraps_errors(mock_settings):
    with patch("wwfm.craft_export.requests.get", side_effect=requests.exceptions.Timeout("slow")):
        with pytest.raises(MigrationError):
            craft_export.fetch_endpoint("assets")


def test_fetch_endpoint_requires_token(mock_settings):
    mock_settings.craft_token = ""
    with pytest.raises(ConfigError):
        craft_export.fetch_endpoint("assets")


def test_export_all_writes_files(mock_settings):
    def fake_fetch(path):
        if path == "entries/sections":
            return {"data": [{"handle": "radio-shows"}, {"handle": "broken"}, {}], "meta": {}}
        if path == "entries/broken":
            raise MigrationError("500")
        return {"data": [{"id": 1}, {"id": 2}], "meta": {}}

    with patch("wwfm.craft_export.fetch_endpoint", side_effect=fake_fetch):
        counts = craft_export.export_all()

    assert counts == {"sections": 3, "radio-shows": 2, "assets": 2}
    out = mock_settings.craft_export_dir
    assert json.loads((out / "radio-shows.json").read_text())["data"] == [{"id": 1}, {"id": 2}]
    assert not (out / "broken.json").exists()


def test_load_export(mock_settings, tmp_path):
    (tmp_path / "assets.json").write_text(json.dumps({"data": [{"id": 7}]}))
    assert craft_export.load_export("assets", tmp_path) == [{"id": 7}]
    with pytest.raises(MigrationError, match="Run craft_export"):
        craft_export.load_export("missing", tmp_path)
