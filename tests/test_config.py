import pytest
import yaml

from generic_config import ConfigValidationError
from mosaicConfig import DetectorType, FileFormat, MosaicSettings, make_mosaic_settings_manager


class TestMosaicSettings:

    def test_defaults_are_valid(self):
        MosaicSettings().validate()

    def test_strings_become_enums(self):
        settings = MosaicSettings(detector="sift", file_format="TIFF")
        assert settings.detector is DetectorType.SIFT
        assert settings.file_format is FileFormat.TIFF

    @pytest.mark.parametrize("field, value", [
        ("num_frame_averages", 0),
        ("min_correspondences", 1),
        ("ransac_confidence", 1.5),
        ("save_retries", -1),
        ("preview_fps", 0),
    ])
    def test_out_of_range(self, field, value):
        settings = MosaicSettings(**{field: value})
        with pytest.raises(ValueError, match=field):
            settings.validate()

    def test_empty_template(self):
        with pytest.raises(ValueError):
            MosaicSettings(tile_name_template="  ").validate()

    @pytest.mark.parametrize("field", ["composite_name_template", "tile_name_template", "snapshot_name_template"])
    def test_malformed_template(self, field):
        with pytest.raises(ValueError, match=field):
            MosaicSettings(**{field: "Tile_{i"}).validate()

    def test_default_templates_are_valid(self):
        MosaicSettings().validate()


class TestSettingsManager:

    def _manager(self, tmp_path):
        return make_mosaic_settings_manager(root_dir=tmp_path)

    def test_load_without_files_gives_defaults(self, tmp_path):
        settings = self._manager(tmp_path).load()
        assert settings == MosaicSettings()

    def test_round_trip(self, tmp_path):
        manager = self._manager(tmp_path)
        original = MosaicSettings(detector=DetectorType.SIFT, num_frame_averages=8, output_dir="out")
        path = manager.save(original)

        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
        assert raw["detector"] == "SIFT"

        loaded = manager.load()
        assert loaded == original
        assert loaded.detector is DetectorType.SIFT

    def test_invalid_file_falls_back_to_defaults(self, tmp_path):
        manager = self._manager(tmp_path)
        manager.write_defaults(MosaicSettings(num_frame_averages=3))
        with open(manager.active_path(), "w", encoding="utf-8") as f:
            yaml.safe_dump({"detector": "SURF"}, f)
        assert manager.load().num_frame_averages == 3

    def test_out_of_range_file_is_rejected(self, tmp_path):
        manager = self._manager(tmp_path)
        path = tmp_path / "bad.yaml"
        path.write_text("min_scale: 5.0\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError):
            manager.load_from_file(path)

    def test_unknown_keys_are_ignored(self, tmp_path):
        manager = self._manager(tmp_path)
        path = tmp_path / "extra.yaml"
        path.write_text("camera_id: 2\nstage_speed: 10\n", encoding="utf-8")
        assert manager.load_from_file(path).camera_id == 2

    def test_save_rejects_invalid(self, tmp_path):
        with pytest.raises(ConfigValidationError):
            self._manager(tmp_path).save(MosaicSettings(max_features=1))

    def test_backups(self, tmp_path):
        manager = make_mosaic_settings_manager(root_dir=tmp_path, backup_keep=2)
        manager.save(MosaicSettings())
        assert manager.list_backups() == []
        manager.save(MosaicSettings(camera_id=1))
        assert len(manager.list_backups()) == 1

    def test_restore_defaults(self, tmp_path):
        manager = self._manager(tmp_path)
        manager.write_defaults(MosaicSettings(preview_fps=10))
        manager.save(MosaicSettings(preview_fps=60))
        restored = manager.restore_defaults_into_active()
        assert restored.preview_fps == 10
        assert manager.load().preview_fps == 10
