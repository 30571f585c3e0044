"""
Manual mosaic acquisition: watch the live preview, move the stage, press
SPACE to add the current frame, P for a single snapshot and S to save the
composite.
"""

import argparse
import logging
import os

import pygame
import yaml

from app_context import get_app_context
from camera.folder_camera import FolderCamera
from generic_config import ConfigValidationError
from logger import get_logger
from mosaic.session import MosaicSession
from UI.mosaic_view import MosaicView


class MosaicApp:
    def __init__(self, session: MosaicSession, display_width: int = 1200, display_height: int = 800):
        pygame.init()
        self.screen = pygame.display.set_mode((display_width, display_height), pygame.RESIZABLE)
        pygame.display.set_caption("Mosaic Acquisition")
        self.clock = pygame.time.Clock()

        self.session = session
        self.view = MosaicView(self.screen)
        self.message = "Press SPACE to add the first frame"
        self.preview = None

    def _refresh_preview(self):
        try:
            self.preview = self.session.preview_from_camera()
        except RuntimeError as e:
            self.preview = None
            self.message = f"Camera error: {e}"

    def add_current_frame(self):
        frame = self.session.last_frame
        if frame is None:
            self.message = "No frame available yet"
            return

        result = self.session.add_from_camera(frame)
        if result.ok:
            self.message = f"Added tile {result.tile_index + 1}"
            camera = self.session.camera
            if isinstance(camera, FolderCamera):
                camera.advance()
        else:
            self.message = f"Not added: {result.failure.value}"

    def save_snapshot(self):
        try:
            result = self.session.save_snapshot()
        except RuntimeError as e:
            self.message = f"Camera error: {e}"
            return
        if result.ok:
            self.message = f"Snapshot saved to {result.paths[0]}"
        else:
            self.message = f"Snapshot failed: {result.message}"

    def save(self):
        result = self.session.save()
        if result.ok:
            self.message = f"Saved to {result.directory}"
        else:
            self.message = f"Save failed: {result.message}"

    def skip_frame(self):
        camera = self.session.camera
        if isinstance(camera, FolderCamera):
            if not camera.advance():
                self.message = "No more images in folder"

    def run(self):
        running = True
        logger = get_logger()
        logger.register_callback(self.view.on_log)
        try:
            while running:
                for event in pygame.event.get():
                    if event.type == pygame.QUIT:
                        running = False
                    elif event.type == pygame.VIDEORESIZE:
                        self.screen = pygame.display.set_mode((event.w, event.h), pygame.RESIZABLE)
                        self.view.screen = self.screen
                    elif event.type == pygame.KEYDOWN:
                        if event.key == pygame.K_ESCAPE:
                            running = False
                        elif event.key in (pygame.K_SPACE, pygame.K_a):
                            self.add_current_frame()
                        elif event.key == pygame.K_s:
                            self.save()
                        elif event.key == pygame.K_n:
                            self.skip_frame()
                        elif event.key == pygame.K_p:
                            self.save_snapshot()

                if not running:
                    break

                self._refresh_preview()
                self.view.draw(
                    self.preview,
                    self.session.last_frame,
                    self.message,
                    self.session.controller.tile_count,
                )
                pygame.display.flip()
                self.clock.tick(self.session.settings.preview_fps)
        finally:
            logger.unregister_callback(self.view.on_log)
            pygame.quit()


def main():
    parser = argparse.ArgumentParser(
        description='Incremental microscope mosaic acquisition with live preview',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --camera-id 1 --averages 8
  python main.py --folder /path/to/images --output ./Composites
        """
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument('--camera-id', '-c', type=int, default=None,
                        help='OpenCV camera index (default: from settings)')
    source.add_argument('--folder', '-f', type=str, default=None,
                        help='Replay images from a folder instead of a camera')
    parser.add_argument('--averages', '-n', type=int, default=None,
                        help='Frames averaged per acquisition (default: from settings)')
    parser.add_argument('--output', '-o', type=str, default=None,
                        help='Parent folder for saved composites (default: from settings)')
    parser.add_argument('--config-dir', type=str, default=None,
                        help='Settings directory (default: ./config/mosaic)')
    settings_source = parser.add_mutually_exclusive_group()
    settings_source.add_argument('--settings-file', type=str, default=None,
                                 help='Use settings from this YAML file for this run')
    settings_source.add_argument('--reset-settings', action='store_true',
                                 help='Restore the default settings into the active file')
    parser.add_argument('--save-defaults', action='store_true',
                        help='Store the resulting settings as the new defaults')
    parser.add_argument('--width', '-w', type=int, default=1200,
                        help='Display width in pixels (default: 1200)')
    parser.add_argument('--height', '-ht', type=int, default=800,
                        help='Display height in pixels (default: 800)')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Show debug messages on the console')

    args = parser.parse_args()

    logger = get_logger()
    logger.enable_file_logging()
    if args.verbose:
        logger.set_console_level(logging.DEBUG)

    if args.folder is not None and not os.path.isdir(args.folder):
        logger.error(f"{args.folder} is not a valid directory")
        return 1

    ctx = get_app_context()
    settings = ctx.load_settings(args.config_dir)
    if args.settings_file is not None:
        try:
            settings = ctx.load_settings_file(args.settings_file)
        except (OSError, yaml.YAMLError, TypeError, ConfigValidationError) as e:
            logger.error(f"Could not load settings from {args.settings_file}: {e}")
            return 1
    elif args.reset_settings:
        settings = ctx.restore_default_settings()
    if args.camera_id is not None:
        settings.camera_id = args.camera_id
    if args.averages is not None:
        settings.num_frame_averages = args.averages
    if args.output is not None:
        settings.output_dir = args.output
    try:
        settings.validate()
    except ValueError as e:
        logger.error(f"Invalid settings: {e}")
        return 1
    if args.save_defaults:
        ctx.write_default_settings()

    if args.folder is not None:
        ctx.use_folder(args.folder)

    try:
        if ctx.camera is None:
            logger.error("No camera available")
            return 1
        app = MosaicApp(ctx.create_session(), args.width, args.height)
        app.run()
        return 0
    finally:
        ctx.cleanup()


if __name__ == "__main__":
    exit(main())
