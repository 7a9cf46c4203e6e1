"""Geometry helpers: oriented rectangles, anchor corners and rectified crops."""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np


@dataclass(frozen=True)
class OrientedRegion:
    """Rotated rectangle in original-image pixel coordinates.

    Attributes:
        center: (x, y) of the rectangle center
        size: (width, height)
        angle: Rotation in degrees, as reported by cv2.minAreaRect
    """
    center: Tuple[float, float]
    size: Tuple[float, float]
    angle: float = 0.0

    @classmethod
    def from_cv2(cls, rect) -> "OrientedRegion":
        (cx, cy), (w, h), angle = rect
        return cls((float(cx), float(cy)), (float(w), float(h)), float(angle))

    def to_cv2(self) -> tuple:
        return (self.center, self.size, self.angle)

    @property
    def area(self) -> float:
        return self.size[0] * self.size[1]

    @property
    def is_degenerate(self) -> bool:
        return self.area <= 0

    def points(self) -> np.ndarray:
        """Return the 4 corners as a (4, 2) float32 array in cv2.boxPoints order."""
        return cv2.boxPoints(self.to_cv2()).astype(np.float32)


# Whole-frame placeholder used when no detector is configured
SENTINEL_REGION = OrientedRegion((0.0, 0.0), (0.0, 0.0), 0.0)


def clip_points(points: np.ndarray, image_size: Tuple[int, int]) -> np.ndarray:
    """Truncate points to integers and clamp them to image boundaries.

    Args:
        points: (N, 2) array of x, y coordinates
        image_size: (width, height) of the image

    Returns:
        (N, 2) int32 array with x in [0, width-1] and y in [0, height-1]
    """
    img_width, img_height = image_size
    pts = np.trunc(np.asarray(points, dtype=np.float64).reshape(-1, 2))
    pts[:, 0] = np.clip(pts[:, 0], 0, img_width - 1)
    pts[:, 1] = np.clip(pts[:, 1], 0, img_height - 1)
    return pts.astype(np.int32)


def top_left_point(points: Sequence) -> Tuple[np.ndarray, int]:
    """Pick the reading-order origin among the corners of a region.

    The two left-most points are compared and the upper one wins, so a
    rotated rectangle whose left edge is nearly vertical still anchors on
    its top-left corner. Ordering by (x, y) makes the choice independent
    of the order the corners are listed in.

    Args:
        points: 4 corner points

    Returns:
        Tuple of (point, index into points)
    """
    pts = np.asarray(points, dtype=np.float32).reshape(-1, 2)
    order = sorted(range(len(pts)), key=lambda i: (pts[i][0], pts[i][1]))
    most_left, almost_most_left = order[0], order[1]

    idx = most_left
    if pts[almost_most_left][1] < pts[most_left][1]:
        idx = almost_most_left
    return pts[idx], idx


def get_affine_crop(
    img: np.ndarray,
    points: np.ndarray,
    target_size: Tuple[int, int],
    anchor_index: int,
) -> np.ndarray:
    """Warp a region into an upright buffer of exactly target_size.

    The anchor corner and the two corners after it map onto the top-left,
    top-right and bottom-right of the output. The fourth corner is ignored.

    Args:
        img: Source image (H, W, 3) or (H, W)
        points: (4, 2) corner points in traversal order
        target_size: (width, height) of the output
        anchor_index: Index of the anchor corner in points

    Returns:
        Crop of shape (height, width, 3), black outside the source
    """
    width, height = target_size
    pts = np.asarray(points, dtype=np.float32).reshape(-1, 2)

    src = np.float32([pts[(anchor_index + k) % 4] for k in range(3)])
    dst = np.float32([
        [0, 0],
        [width - 1, 0],
        [width - 1, height - 1],
    ])

    if img.ndim == 2:
        img = cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)

    M = cv2.getAffineTransform(src, dst)
    return cv2.warpAffine(
        img,
        M,
        (width, height),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=(0, 0, 0),
    )


def fallback_corners(img: np.ndarray, center_crop: bool = False, fraction: float = 0.05) -> np.ndarray:
    """Corners (TL, TR, BR, BL) of the window used when there is no detected geometry.

    With center_crop a small window centered in the frame is taken
    (width = fraction of the frame width, height = half that width),
    otherwise the whole frame.
    """
    rows, cols = img.shape[:2]
    if center_crop:
        w = max(int(cols * fraction), 1)
        h = max(int(w * 0.5), 1)
        x = int(cols * 0.5 - w * 0.5)
        y = int(rows * 0.5 - h * 0.5)
    else:
        x, y, w, h = 0, 0, cols, rows
    return np.float32([[x, y], [x + w, y], [x + w, y + h], [x, y + h]])


def fallback_window(
    img: np.ndarray,
    center_crop: bool = False,
    fraction: float = 0.05,
) -> Tuple[np.ndarray, np.ndarray]:
    """Crop the fallback window out of the frame.

    Returns:
        Tuple of (crop, corners) where corners are TL, TR, BR, BL
    """
    corners = fallback_corners(img, center_crop, fraction)
    (x0, y0), (x1, y1) = corners[0].astype(int), corners[2].astype(int)
    return img[y0:y1, x0:x1].copy(), corners


def rectify_region(
    img: np.ndarray,
    region: OrientedRegion,
    target_size: Optional[Tuple[int, int]],
    center_crop: bool = False,
    center_crop_fraction: float = 0.05,
) -> Tuple[Optional[np.ndarray], np.ndarray, int]:
    """Produce the upright crop for a region.

    Degenerate regions take the fallback window without rotation, anchored
    on its top-left corner.

    Args:
        img: Source image (BGR)
        region: Region to rectify
        target_size: (width, height) of the crop. None leaves the fallback
            window at its own size and skips warping detected regions
        center_crop: Use the centered window for degenerate regions
        center_crop_fraction: Width of that window relative to the frame

    Returns:
        Tuple of (crop or None, (4, 2) corners, anchor corner index)
    """
    if region.is_degenerate:
        crop, corners = fallback_window(img, center_crop, center_crop_fraction)
        if crop.ndim == 2:
            crop = cv2.cvtColor(crop, cv2.COLOR_GRAY2BGR)
        if target_size is not None:
            crop = cv2.resize(crop, tuple(target_size))
        return crop, corners, 0

    points = region.points()
    _, anchor_index = top_left_point(points)
    crop = None
    if target_size is not None:
        crop = get_affine_crop(img, points, target_size, anchor_index)
    return crop, points, anchor_index
