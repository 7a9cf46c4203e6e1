"""
Frame sources: single images, image lists, video files and cameras.

Every source returns BGR frames from next() and None once exhausted.
"""

import logging
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Union

import cv2
import numpy as np

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff", ".webp"}


class ImageSource:
    """Base class for frame sources."""

    def next(self) -> Optional[np.ndarray]:
        raise NotImplementedError

    def close(self):
        pass

    def __iter__(self) -> Iterator[np.ndarray]:
        while True:
            image = self.next()
            if image is None:
                return
            yield image

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def read_image(path: Union[str, Path]) -> Optional[np.ndarray]:
    image = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if image is None:
        logger.warning("Could not read image: %s", path)
    return image


class SingleImageSource(ImageSource):
    """Yields one image once, or forever when loop is set."""

    def __init__(self, path: Union[str, Path], loop: bool = False):
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"Image not found: {path}")
        self.loop = loop
        self._image = None
        self._done = False

    def next(self) -> Optional[np.ndarray]:
        if self._done:
            return None
        if self._image is None:
            self._image = read_image(self.path)
            if self._image is None:
                self._done = True
                return None
        if not self.loop:
            self._done = True
        return self._image.copy()


class ImageListSource(ImageSource):
    """Reads images in order from a list of paths.

    Args:
        paths: Explicit paths, a directory of images, or a text file with
            one path per line (relative paths resolve against its folder)
    """

    def __init__(self, paths: Union[str, Path, Sequence[Union[str, Path]]]):
        self.paths = self._expand(paths)
        self._index = 0

    @staticmethod
    def _expand(paths) -> List[Path]:
        if isinstance(paths, (str, Path)):
            root = Path(paths)
            if root.is_dir():
                return sorted(p for p in root.iterdir() if p.suffix.lower() in IMAGE_SUFFIXES)
            if not root.exists():
                raise FileNotFoundError(f"Image list not found: {paths}")
            if root.suffix.lower() in IMAGE_SUFFIXES:
                return [root]
            listed = []
            for line in root.read_text(encoding="utf-8").splitlines():
                line = line.strip()
                if not line:
                    continue
                path = Path(line)
                listed.append(path if path.is_absolute() else root.parent / path)
            return listed
        return [Path(p) for p in paths]

    def next(self) -> Optional[np.ndarray]:
        # Unreadable entries are skipped rather than ending the stream
        while self._index < len(self.paths):
            path = self.paths[self._index]
            self._index += 1
            image = read_image(path)
            if image is not None:
                return image
        return None


class VideoSource(ImageSource):
    """Frames from a video file or a camera index via cv2.VideoCapture."""

    def __init__(self, target: Union[str, int]):
        self.target = target
        self.capture = cv2.VideoCapture(target)
        if not self.capture.isOpened():
            raise FileNotFoundError(f"Cannot open video source: {target}")

    def next(self) -> Optional[np.ndarray]:
        ok, frame = self.capture.read()
        if not ok or frame is None:
            return None
        return frame

    def close(self):
        self.capture.release()


def make_source(kind: str, path: str) -> ImageSource:
    """Build a source by kind: 'image', 'list', 'video' or 'webcam'."""
    if kind == "image":
        return SingleImageSource(path)
    if kind == "list":
        return ImageListSource(path)
    if kind == "video":
        return VideoSource(str(path))
    if kind == "webcam":
        return VideoSource(int(path) if str(path).isdigit() else 0)
    raise ValueError(f"Unknown input type: {kind}")
