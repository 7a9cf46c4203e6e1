import numpy as np
import pytest

from scene_text.ocr.config import DetectorConfig
from scene_text.ocr.postprocess import PixelLinkPostProcess
from scene_text.ocr.preprocess import create_operators, transform
from scene_text.ocr.text_detector import TextDetector, logits_to_scores, pairwise_softmax


def test_pairwise_softmax_picks_positive_channel() -> None:
    logits = np.zeros((4, 2, 3), dtype=np.float32)
    logits[1] = 2.0  # map 0 positive
    logits[2] = 3.0  # map 1 negative

    probs = pairwise_softmax(logits)

    assert probs.shape == (2, 2, 3)
    np.testing.assert_allclose(probs[0], 1 / (1 + np.exp(-2.0)), rtol=1e-6)
    np.testing.assert_allclose(probs[1], 1 / (1 + np.exp(3.0)), rtol=1e-6)


def test_pairwise_softmax_is_stable_for_large_logits() -> None:
    logits = np.array([[[0.0]], [[1000.0]]], dtype=np.float32)

    assert pairwise_softmax(logits)[0, 0, 0] == pytest.approx(1.0)


def test_pairwise_softmax_rejects_odd_channels() -> None:
    with pytest.raises(ValueError, match="even"):
        pairwise_softmax(np.zeros((3, 2, 2), dtype=np.float32))


@pytest.mark.parametrize("batched", [True, False])
def test_logits_to_scores_shapes(batched: bool) -> None:
    segm = np.zeros((2, 5, 7), dtype=np.float32)
    link = np.zeros((16, 5, 7), dtype=np.float32)
    if batched:
        segm, link = segm[None], link[None]

    text_scores, link_scores = logits_to_scores(segm, link)

    assert text_scores.shape == (5, 7)
    assert link_scores.shape == (8, 5, 7)
    np.testing.assert_allclose(text_scores, 0.5)


def test_split_outputs_identifies_segmentation_by_channels() -> None:
    segm = np.zeros((1, 2, 4, 4), dtype=np.float32)
    link = np.zeros((1, 16, 4, 4), dtype=np.float32)

    first, second = TextDetector._split_outputs([link, segm])

    assert first is segm
    assert second is link

    with pytest.raises(RuntimeError):
        TextDetector._split_outputs([link, link])
    with pytest.raises(RuntimeError):
        TextDetector._split_outputs([segm])


def test_preprocess_operators_resize_and_transpose() -> None:
    ops = create_operators([
        {"ResizeImage": {"width": 32, "height": 16}},
        {"NormalizeImage": {"scale": 1.0 / 255}},
        {"ToCHWImage": None},
        {"KeepKeys": {"keep_keys": ["image", "shape"]}},
    ])
    image = np.full((20, 40, 3), 255, dtype=np.uint8)

    img, shape = transform({"image": image}, ops)

    assert img.shape == (3, 16, 32)
    assert img.dtype == np.float32
    np.testing.assert_allclose(img, 1.0)
    np.testing.assert_allclose(shape, [20, 40, 0.8, 0.8])


def test_resize_converts_grayscale() -> None:
    ops = create_operators([{"ResizeImage": {"width": 8, "height": 4}}, {"ToCHWImage": None}])

    data = transform({"image": np.zeros((4, 8), dtype=np.uint8)}, ops)

    assert data["image"].shape == (3, 4, 8)


def test_unknown_operator_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown"):
        create_operators([{"DecodeImage": None}])


def test_detector_infer_returns_score_maps(fake_session, monkeypatch) -> None:
    monkeypatch.setattr(fake_session, "input_shape", [1, 3, "H", "W"])
    link = np.zeros((1, 16, 6, 10), dtype=np.float32)
    segm = np.zeros((1, 2, 6, 10), dtype=np.float32)
    segm[0, 1, 2, 3] = 10.0
    monkeypatch.setattr(fake_session, "outputs", [link, segm])
    detector = TextDetector("det.onnx", DetectorConfig(input_size=(40, 24)))

    text_scores, link_scores = detector.infer(np.zeros((50, 80, 3), dtype=np.uint8))

    assert detector.session.batches[0].shape == (1, 3, 24, 40)
    assert text_scores.shape == (6, 10)
    assert link_scores.shape == (8, 6, 10)
    assert text_scores[2, 3] > 0.99
    assert text_scores[0, 0] == pytest.approx(0.5)


def test_detector_detect_decodes_regions(fake_session, monkeypatch) -> None:
    monkeypatch.setattr(fake_session, "input_shape", [1, 3, 24, 40])
    link = np.full((1, 16, 6, 10), -10.0, dtype=np.float32)
    link[0, 1::2] = 10.0
    segm = np.zeros((1, 2, 6, 10), dtype=np.float32)
    segm[0, 1, 1:4, 2:8] = 10.0
    monkeypatch.setattr(fake_session, "outputs", [segm, link])
    detector = TextDetector("det.onnx")
    postprocess = PixelLinkPostProcess(0.6, 0.6, box_method="cells", min_area=0, min_height=0)

    regions = detector.detect(np.zeros((60, 100, 3), dtype=np.uint8), postprocess)

    assert detector.input_size == (40, 24)
    assert len(regions) == 1
    # Cells 2..7 x 1..3 at stride 10 cover x 20..80, y 10..40
    assert regions[0].center == pytest.approx((50.0, 25.0))
    assert sorted(regions[0].size) == pytest.approx([30.0, 60.0])


def test_detector_needs_input_size_for_dynamic_model(fake_session, monkeypatch) -> None:
    monkeypatch.setattr(fake_session, "input_shape", [1, 3, "H", "W"])

    with pytest.raises(ValueError, match="dynamic input shape"):
        TextDetector("det.onnx")
