from datetime import datetime

import pytest

from camera.image_name_formatter import ImageNameFormatter

NOW = datetime(2018, 8, 1, 14, 5, 9)


class TestImageNameFormatter:

    def setup_method(self):
        self.formatter = ImageNameFormatter()

    def test_composite_default(self):
        name = self.formatter.get_formatted_string(template="Composite_{M}_{D}_{Y}_{h}:{m}:{s}", now=NOW)
        assert name == "Composite_8_1_2018_14:5:9"

    def test_index_and_count(self):
        assert self.formatter.get_formatted_string(template="Tile_{i}_of_{n}", index=3, count=12) == "Tile_3_of_12"

    def test_saved_template_without_index(self):
        f = ImageNameFormatter(template="Tile_{i}")
        assert f.get_formatted_string() == "Tile_{i}"
        assert f.get_formatted_string(index=4) == "Tile_4"

    def test_date_format(self):
        assert self.formatter.get_formatted_string(template="{d}", now=NOW) == "20180801"
        assert self.formatter.get_formatted_string(template="{d:%H%M}", now=NOW) == "1405"

    def test_unknown_and_escaped_braces(self):
        name = self.formatter.get_formatted_string(template="{sample}_{{i}}_{i}", index=2)
        assert name == "{sample}_{i}_2"

    def test_missing_template(self):
        with pytest.raises(ValueError):
            self.formatter.get_formatted_string()

    def test_validate(self):
        assert self.formatter.validate_template("Tile_{i}")["is_valid"]
        report = self.formatter.validate_template("Tile_{i:03}_{sample}", strict=True)
        assert not report["is_valid"]
        assert report["unknown"] == ["sample"]
        assert not self.formatter.validate_template("Tile_{i")["is_valid"]
