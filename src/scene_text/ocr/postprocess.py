"""Postprocessing modules for detector score maps and recognizer outputs."""

import logging
from typing import Iterator, List, NamedTuple, Tuple

import cv2
import numpy as np

from .config import Alphabet, AlphabetMismatchError
from .geometry import OrientedRegion

logger = logging.getLogger(__name__)

# (dx, dy) per link channel, row-major around the pixel
NEIGHBORS_8 = ((-1, -1), (0, -1), (1, -1), (-1, 0), (1, 0), (-1, 1), (0, 1), (1, 1))
NEIGHBORS_4 = ((0, -1), (-1, 0), (1, 0), (0, 1))
# Channels of NEIGHBORS_4 inside an 8-direction link map
_FOUR_IN_EIGHT = (1, 3, 4, 6)


class DisjointSet:
    """Union-find over flat grid indices, iterative with path halving."""

    def __init__(self, size: int):
        self.parent = list(range(size))

    def find(self, index: int) -> int:
        parent = self.parent
        while parent[index] != index:
            parent[index] = parent[parent[index]]
            index = parent[index]
        return index

    def union(self, a: int, b: int):
        root_a = self.find(a)
        root_b = self.find(b)
        if root_a == root_b:
            return
        # Smaller index stays root so labels follow row-major order
        if root_a < root_b:
            self.parent[root_b] = root_a
        else:
            self.parent[root_a] = root_b


class PixelLinkPostProcess:
    """Post-processing for PixelLink-style text detection.

    Converts a text score map and per-direction link score maps into
    oriented rectangles in original-image coordinates.
    """

    def __init__(
        self,
        text_threshold=0.8,
        link_threshold=0.8,
        neighbors=8,
        box_method="contour",
        min_area=300,
        min_height=10,
    ):
        """Initialize PixelLink post-processor.

        Args:
            text_threshold: Minimum score of a text pixel (inclusive)
            link_threshold: Minimum link score joining two text pixels (inclusive)
            neighbors: Link directions scored, 8 or 4
            box_method: 'contour' fits the upsampled component outline,
                'cells' fits the scaled corners of every component cell
            min_area: Minimum rectangle area in image pixels
            min_height: Minimum rectangle short side in image pixels
        """
        if neighbors not in (4, 8):
            raise ValueError(f"neighbors must be 4 or 8, got {neighbors}")
        if box_method not in ("contour", "cells"):
            raise ValueError(f"Unknown box_method: {box_method}")

        self.text_threshold = text_threshold
        self.link_threshold = link_threshold
        self.neighbors = neighbors
        self.box_method = box_method
        self.min_area = min_area
        self.min_height = min_height

    def __call__(
        self,
        text_scores: np.ndarray,
        link_scores: np.ndarray,
        image_size: Tuple[int, int],
    ) -> List[OrientedRegion]:
        """Decode score maps into oriented rectangles.

        Args:
            text_scores: Text pixel probabilities (H, W)
            link_scores: Link probabilities (K, H, W), one channel per direction
            image_size: Original image (width, height)

        Returns:
            Regions in component order, degenerate and undersized ones dropped
        """
        text_scores = np.asarray(text_scores)
        link_scores = np.asarray(link_scores)
        if text_scores.ndim != 2:
            raise ValueError(f"Expected 2D text score map, got shape {text_scores.shape}")
        if link_scores.ndim != 3 or link_scores.shape[1:] != text_scores.shape:
            raise ValueError(
                f"Link scores {link_scores.shape} do not match text scores {text_scores.shape}"
            )

        labels, num_components, num_pixels = self.label_components(text_scores, link_scores)
        regions = self.regions_from_labels(labels, num_components, image_size)

        min_area = min(self.min_area, num_pixels)
        kept = []
        for region in regions:
            if region.is_degenerate:
                continue
            if min(region.size) < self.min_height:
                continue
            if region.area < min_area:
                continue
            kept.append(region)

        logger.debug(
            "Decoded %d regions from %d components (%d text pixels)",
            len(kept), num_components, num_pixels,
        )
        return kept

    def label_components(
        self,
        text_scores: np.ndarray,
        link_scores: np.ndarray,
    ) -> Tuple[np.ndarray, int, int]:
        """Group text pixels joined by strong links.

        Returns:
            Tuple of (label map with 0 as background and components
            numbered from 1 in row-major order, component count, text
            pixel count)
        """
        height, width = text_scores.shape
        pixel_mask = text_scores >= self.text_threshold

        forest = DisjointSet(height * width)
        for sources, targets in self._link_edges(pixel_mask, link_scores):
            for a, b in zip(sources.tolist(), targets.tolist()):
                forest.union(a, b)

        labels = np.zeros(height * width, dtype=np.int32)
        root_labels = {}
        text_pixels = np.flatnonzero(pixel_mask)
        for index in text_pixels.tolist():
            root = forest.find(index)
            if root not in root_labels:
                root_labels[root] = len(root_labels) + 1
            labels[index] = root_labels[root]

        return labels.reshape(height, width), len(root_labels), len(text_pixels)

    def _link_edges(
        self,
        pixel_mask: np.ndarray,
        link_scores: np.ndarray,
    ) -> Iterator[Tuple[np.ndarray, np.ndarray]]:
        """Yield flat (source, neighbor) index pairs for every admitted link."""
        height, width = pixel_mask.shape
        num_channels = link_scores.shape[0]

        if num_channels == 8:
            directions = NEIGHBORS_8
            channels = range(8)
            if self.neighbors == 4:
                directions = NEIGHBORS_4
                channels = _FOUR_IN_EIGHT
        elif num_channels == 4:
            if self.neighbors == 8:
                raise ValueError("8-neighbor linking needs an 8-channel link map")
            directions = NEIGHBORS_4
            channels = range(4)
        else:
            raise ValueError(f"Expected 4 or 8 link channels, got {num_channels}")

        for (dx, dy), channel in zip(directions, channels):
            strong = pixel_mask & (link_scores[channel] >= self.link_threshold)
            ys, xs = np.nonzero(strong)
            ny = ys + dy
            nx = xs + dx

            inside = (ny >= 0) & (ny < height) & (nx >= 0) & (nx < width)
            ys, xs, ny, nx = ys[inside], xs[inside], ny[inside], nx[inside]

            admitted = pixel_mask[ny, nx]
            yield ys[admitted] * width + xs[admitted], ny[admitted] * width + nx[admitted]

    def regions_from_labels(
        self,
        labels: np.ndarray,
        num_components: int,
        image_size: Tuple[int, int],
    ) -> List[OrientedRegion]:
        """Fit a minimum-area rectangle to every component."""
        map_height, map_width = labels.shape
        img_width, img_height = image_size
        scale_x = img_width / float(map_width)
        scale_y = img_height / float(map_height)

        # Nearest-neighbor source cell of every image row and column
        row_cells = np.minimum(np.arange(img_height) * map_height // img_height, map_height - 1)
        col_cells = np.minimum(np.arange(img_width) * map_width // img_width, map_width - 1)

        regions = []
        for label in range(1, num_components + 1):
            ys, xs = np.nonzero(labels == label)
            if len(xs) == 0:
                continue

            if self.box_method == "cells":
                points = self._cell_corners(xs, ys, scale_x, scale_y)
            else:
                points = self._component_contour(
                    labels, label, xs, ys, row_cells, col_cells
                )
            if points is None or len(points) == 0:
                continue

            regions.append(OrientedRegion.from_cv2(cv2.minAreaRect(points)))

        return regions

    @staticmethod
    def _cell_corners(xs, ys, scale_x, scale_y) -> np.ndarray:
        x0 = xs * scale_x
        x1 = (xs + 1) * scale_x
        y0 = ys * scale_y
        y1 = (ys + 1) * scale_y
        corners = np.concatenate([
            np.stack([x0, y0], axis=1),
            np.stack([x1, y0], axis=1),
            np.stack([x1, y1], axis=1),
            np.stack([x0, y1], axis=1),
        ])
        return corners.astype(np.float32)

    @staticmethod
    def _component_contour(labels, label, xs, ys, row_cells, col_cells):
        """Outline of one component after nearest-neighbor upsampling."""
        x0 = int(np.searchsorted(col_cells, xs.min(), side="left"))
        x1 = int(np.searchsorted(col_cells, xs.max(), side="right"))
        y0 = int(np.searchsorted(row_cells, ys.min(), side="left"))
        y1 = int(np.searchsorted(row_cells, ys.max(), side="right"))
        if x1 <= x0 or y1 <= y0:
            return None

        window = labels[row_cells[y0:y1][:, None], col_cells[x0:x1][None, :]]
        mask = (window == label).astype(np.uint8)

        outs = cv2.findContours(
            mask,
            cv2.RETR_EXTERNAL,
            cv2.CHAIN_APPROX_SIMPLE,
            offset=(x0, y0),
        )
        if len(outs) == 3:
            contours = outs[1]
        else:
            contours = outs[0]

        if not contours:
            return None
        return np.concatenate(contours).reshape(-1, 2).astype(np.float32)


def decode_regions(
    text_scores: np.ndarray,
    link_scores: np.ndarray,
    image_size: Tuple[int, int],
    text_threshold: float,
    link_threshold: float,
    **kwargs,
) -> List[OrientedRegion]:
    """Functional shortcut for PixelLinkPostProcess."""
    postprocess = PixelLinkPostProcess(text_threshold, link_threshold, **kwargs)
    return postprocess(text_scores, link_scores, image_size)


class DecodedText(NamedTuple):
    text: str
    confidence: float


class CTCGreedyDecode:
    """Greedy CTC decoding for text recognition."""

    def __init__(self, alphabet: Alphabet):
        """Initialize CTC decoder.

        Args:
            alphabet: Symbols in model output order, pad symbol last
        """
        self.alphabet = alphabet
        self.pad_index = alphabet.pad_index

    def __call__(self, preds: np.ndarray) -> DecodedText:
        """Decode one probability sequence.

        Args:
            preds: Probabilities shaped (T, A), (T, 1, A) or (1, T, A)

        Returns:
            DecodedText whose confidence is the product of the per-step
            maxima over all T steps, pad and collapsed steps included
        """
        probs = self.as_matrix(preds)
        if probs.shape[1] != len(self.alphabet):
            raise AlphabetMismatchError(
                f"The text recognition model does not correspond to alphabet: "
                f"output width {probs.shape[1]}, alphabet length {len(self.alphabet)}"
            )
        if probs.shape[0] == 0:
            return DecodedText("", 1.0)

        preds_idx = probs.argmax(axis=1)
        preds_prob = probs.max(axis=1)
        confidence = float(np.prod(preds_prob.astype(np.float64)))

        return DecodedText(self.decode(preds_idx), confidence)

    def decode(self, text_index: np.ndarray) -> str:
        """Convert per-step symbol indices to a string."""
        text_index = np.asarray(text_index)
        if len(text_index) == 0:
            return ""

        selection = np.ones(len(text_index), dtype=bool)
        selection[1:] = text_index[1:] != text_index[:-1]
        selection &= text_index != self.pad_index

        return "".join(self.alphabet[idx] for idx in text_index[selection].tolist())

    @staticmethod
    def as_matrix(preds: np.ndarray) -> np.ndarray:
        probs = np.asarray(preds)
        if probs.ndim == 3:
            if probs.shape[1] == 1:
                probs = probs[:, 0, :]
            elif probs.shape[0] == 1:
                probs = probs[0]
            else:
                raise ValueError(f"Expected a single sequence, got shape {probs.shape}")
        if probs.ndim != 2:
            raise ValueError(f"Expected (T, A) probabilities, got shape {probs.shape}")
        return probs


def ctc_greedy_decode(preds: np.ndarray, alphabet: Alphabet) -> DecodedText:
    return CTCGreedyDecode(alphabet)(preds)


def filter_by_confidence(decoded: DecodedText, min_confidence: float) -> DecodedText:
    """Blank out text below min_confidence, keeping the confidence itself."""
    if decoded.confidence >= min_confidence:
        return decoded
    return DecodedText("", decoded.confidence)
