"""
Unit Tests for Engine Settings
"""
import pytest

from bundle_repair.core.config import Settings, parse_file_names, settings


class TestParseFileNames:
    """Tests for list-valued settings"""

    @pytest.mark.parametrize("value,expected", [
        ("style.css", ["style.css"]),
        ("style.css, main.css,", ["style.css", "main.css"]),
        ('["a.css", "b.css"]', ["a.css", "b.css"]),
        ("[not json", ["[not json"]),
        (["x.css"], ["x.css"]),
        (None, []),
    ])
    def test_parse(self, value, expected):
        """Test comma-separated, JSON and list input"""
        assert parse_file_names(value) == expected


class TestSettings:
    """Tests for the settings object"""

    def test_testing_environment(self):
        """Test the suite runs with the testing environment"""
        assert settings.ENVIRONMENT == "testing"
        assert settings.is_production is False

    def test_defaults(self):
        """Test bundle shape defaults"""
        assert settings.MARKUP_FILE_NAME == "index.html"
        assert settings.STYLESHEET_FILE_NAME == "styles.css"
        assert settings.SCRIPT_FILE_NAME == "script.js"
        assert settings.STYLESHEET_ALIASES == ["style.css"]
        assert settings.MIN_FILE_CONTENT_LENGTH == 10

    def test_environment_override(self, monkeypatch):
        """Test values are read from the environment"""
        monkeypatch.setenv("STYLESHEET_ALIASES_STR", "style.css,main.css")
        monkeypatch.setenv("MAX_CANDIDATE_REGIONS", "2")
        monkeypatch.setenv("ENVIRONMENT", "production")

        overridden = Settings()

        assert overridden.STYLESHEET_ALIASES == ["style.css", "main.css"]
        assert overridden.MAX_CANDIDATE_REGIONS == 2
        assert overridden.is_production is True
