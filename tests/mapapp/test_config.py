"""Unit tests for mapapp.config — environment-driven settings."""

from __future__ import annotations

from pathlib import Path

import pytest

from mapapp.config import Settings

pytestmark = pytest.mark.unit


class TestSettings:

    def test_defaults(self, monkeypatch):
        for name in ("MAPBOX_TOKEN", "POINTS_CSV_URL", "POINTS_CSV_PATH"):
            monkeypatch.delenv(name, raising=False)
        s = Settings(_env_file=None)
        assert s.app_name == "MAPSYNC"
        assert s.port == 8000
        assert s.mapbox_token == ""
        assert s.fetch_timeout == 30.0
        assert s.map_container == "map"
        assert s.points_csv_path == Path("./data/points.csv")

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("MAPBOX_TOKEN", "pk.abc")
        monkeypatch.setenv("points_csv_url", "https://example.com/p.csv")
        s = Settings(_env_file=None)
        assert s.mapbox_token == "pk.abc"
        assert s.token_configured
        assert s.dataset_url == "https://example.com/p.csv"

    def test_dataset_url_falls_back_to_path(self, monkeypatch):
        monkeypatch.delenv("POINTS_CSV_URL", raising=False)
        s = Settings(_env_file=None, points_csv_url="  ", points_csv_path=Path("/srv/pts.csv"))
        assert s.dataset_url == "/srv/pts.csv"

    @pytest.mark.parametrize("token", ["", "   ", "YOUR_TOKEN"])
    def test_placeholder_tokens_not_configured(self, token):
        assert not Settings(_env_file=None, mapbox_token=token).token_configured

    def test_env_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("MAPBOX_TOKEN", raising=False)
        env = tmp_path / ".env"
        env.write_text("MAPBOX_TOKEN=pk.fromfile\nUNRELATED=1\n")
        s = Settings(_env_file=env)
        assert s.mapbox_token == "pk.fromfile"
