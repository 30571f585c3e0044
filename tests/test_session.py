import cv2
import numpy as np
import pytest
import yaml

from conftest import crop, make_engine
from mosaic.controller import MosaicController
from mosaic.errors import FailureKind
from mosaic.persistence import MANIFEST_FILENAME
from mosaic.session import MosaicSession
from mosaicConfig import MosaicSettings
from test_camera import FakeCamera


def _session(frames, tmp_path):
    settings = MosaicSettings(num_frame_averages=2, output_dir=str(tmp_path))
    camera = FakeCamera(frames)
    camera.open()
    controller = MosaicController(settings, engine=make_engine())
    return MosaicSession(settings, camera, controller=controller)


class TestMosaicSession:

    def test_acquire_uses_configured_averages(self, tmp_path, world):
        seed = crop(world, 0, 0)
        session = _session([seed, seed], tmp_path)
        frame = session.acquire()
        assert session.camera.grabbed == 2
        assert np.array_equal(frame, seed)
        assert session.last_frame is frame

    def test_preview_then_add_same_frame(self, tmp_path, world):
        first, second = crop(world, 0, 0), crop(world, 10, 5)
        session = _session([first, first, second, second], tmp_path)

        assert session.add_from_camera().ok
        preview = session.preview_from_camera()
        assert preview.ok
        assert session.controller.tile_count == 1

        result = session.add_from_camera(session.last_frame)
        assert result.ok
        assert session.controller.bounds.as_list() == [0, 110, 0, 105]

    def test_save_includes_camera_metadata(self, tmp_path, world):
        session = _session([crop(world, 0, 0)] * 2, tmp_path)
        session.add_from_camera()
        result = session.save(name="slide")
        assert result.ok
        with open(result.directory / MANIFEST_FILENAME, encoding="utf-8") as f:
            manifest = yaml.safe_load(f)
        assert manifest["additional"]["camera"] == {"camera": "fake"}

    def test_without_camera(self):
        session = MosaicSession(MosaicSettings())
        with pytest.raises(RuntimeError):
            session.acquire()

    def test_sessions_are_independent(self, tmp_path, world):
        a = _session([crop(world, 0, 0)] * 2, tmp_path)
        b = _session([crop(world, 0, 0)] * 2, tmp_path)
        a.add_from_camera()
        assert a.controller.tile_count == 1
        assert b.controller.tile_count == 0


class TestSnapshot:

    def test_named_snapshot(self, tmp_path, world):
        frame = crop(world, 0, 0)
        session = _session([frame, frame], tmp_path)

        result = session.save_snapshot(tmp_path / "snaps", name="focus_check")

        assert result.ok
        assert result.paths == [tmp_path / "snaps" / "focus_check.png"]
        assert np.array_equal(cv2.imread(str(result.paths[0]), cv2.IMREAD_GRAYSCALE), frame)
        assert session.controller.tile_count == 0

    def test_default_name_and_folder(self, tmp_path, world):
        session = _session([crop(world, 0, 0)] * 2, tmp_path)
        session.settings.snapshot_dir = str(tmp_path / "Snapshots")

        result = session.save_snapshot()

        assert result.ok
        assert result.directory == tmp_path / "Snapshots"
        assert result.paths[0].name.startswith("Image_Manual_")

    def test_unwritable_destination(self, tmp_path, world):
        session = _session([crop(world, 0, 0)] * 2, tmp_path)
        blocker = tmp_path / "blocker"
        blocker.write_text("not a folder")

        result = session.save_snapshot(blocker, name="x")

        assert not result.ok
        assert result.failure == FailureKind.PERSISTENCE_FAILURE
