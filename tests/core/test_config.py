"""Tests for the YAML configuration loader."""

from pathlib import Path

import pytest

from flightpath.core.config import ConfigError, ConfigLoader


class TestConfigLoader:
    """Test suite for ConfigLoader."""

    def test_load_and_get_nested(self, tmp_path: Path) -> None:
        """Test loading a file and reading nested keys."""
        path = tmp_path / "config.yaml"
        path.write_text("flight_path:\n  bank_angle_deg: 20\n  max_turn_radius_m: null\n")

        config = ConfigLoader.load(path)

        assert config.get("flight_path.bank_angle_deg") == 20
        assert config.get("flight_path.max_turn_radius_m", default=5.0) is None
        assert config.get("flight_path.missing", default=1.5) == 1.5
        assert config.get("flight_path.bank_angle_deg.deeper", default="x") == "x"

    def test_load_missing_file(self, tmp_path: Path) -> None:
        """Test that a missing file raises ConfigError."""
        with pytest.raises(ConfigError, match="not found"):
            ConfigLoader.load(tmp_path / "absent.yaml")

    def test_load_invalid_yaml(self, tmp_path: Path) -> None:
        """Test that unparsable YAML raises ConfigError."""
        path = tmp_path / "broken.yaml"
        path.write_text("flight_path: [1, 2")

        with pytest.raises(ConfigError, match="Failed to load"):
            ConfigLoader.load(path)

    def test_load_non_mapping_root(self, tmp_path: Path) -> None:
        """Test that a list at the root is rejected."""
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")

        with pytest.raises(ConfigError, match="mapping"):
            ConfigLoader.load(path)

    def test_load_empty_file(self, tmp_path: Path) -> None:
        """Test that an empty file gives an empty configuration."""
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert ConfigLoader.load(path).to_dict() == {}

    def test_set_creates_sections(self) -> None:
        """Test that set creates intermediate sections."""
        config = ConfigLoader()
        config.set("flight_path.bank_angle_deg", 30)

        assert config.get_section("flight_path") == {"bank_angle_deg": 30}

    def test_get_section_errors(self) -> None:
        """Test get_section on missing keys and scalar values."""
        config = ConfigLoader.from_dict({"flight_path": {"bank_angle_deg": 25}})

        with pytest.raises(ConfigError, match="not found"):
            config.get_section("logging")
        with pytest.raises(ConfigError, match="not a section"):
            config.get_section("flight_path.bank_angle_deg")

    def test_from_dict_copies_input(self) -> None:
        """Test that later changes to the source dictionary are not seen."""
        data = {"flight_path": {"bank_angle_deg": 25}}
        config = ConfigLoader.from_dict(data)
        data["flight_path"]["bank_angle_deg"] = 10

        assert config.get("flight_path.bank_angle_deg") == 25

    def test_merge_overrides_nested_values(self) -> None:
        """Test that merge overrides leaves and keeps unrelated keys."""
        config = ConfigLoader.from_dict({"flight_path": {"bank_angle_deg": 25, "default_speed_kts": 120}})
        config.merge(ConfigLoader.from_dict({"flight_path": {"bank_angle_deg": 15}}))

        assert config.get("flight_path.bank_angle_deg") == 15
        assert config.get("flight_path.default_speed_kts") == 120

    def test_save_round_trip(self, tmp_path: Path) -> None:
        """Test that a saved configuration loads back identically."""
        config = ConfigLoader.from_dict({"flight_path": {"bank_angle_deg": 25, "max_turn_radius_m": None}})
        path = tmp_path / "nested" / "saved.yaml"

        config.save(path)

        assert ConfigLoader.load(path).to_dict() == config.to_dict()

    def test_shipped_flight_path_config(self) -> None:
        """Test that the repository configuration has a flight_path section."""
        path = Path(__file__).resolve().parents[2] / "config" / "flightpath.yaml"

        section = ConfigLoader.load(path).get_section("flight_path")

        assert section["course_reversal_threshold_deg"] == 135
        assert section["bank_angle_deg"] == 25
