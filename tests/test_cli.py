import cv2
import numpy as np

from scene_text import cli
from scene_text.ocr.config import PipelineConfig
from scene_text.pipeline import TextSpotter


class StubDetector:
    def infer(self, image):
        text = np.zeros((20, 40), dtype=np.float32)
        text[6:9, 2:10] = 0.9
        return text, np.ones((8, 20, 40), dtype=np.float32)


def test_parser_defaults() -> None:
    args = cli.build_parser().parse_args(["-i", "a.png"])

    assert args.input_type == "image"
    assert args.cls_pixel_thr == 0.8
    assert args.link_pixel_thr == 0.8
    assert args.thr == 0.2
    assert args.max_rect_num == -1
    assert args.detector_size == [1280, 768]
    assert not args.raw
    assert not args.center_crop


def test_no_models_is_an_error(capsys) -> None:
    assert cli.main(["-i", "a.png"]) == 1
    assert "Error" in capsys.readouterr().err


def test_pad_symbol_in_alphabet_is_rejected_before_loading(capsys) -> None:
    code = cli.main(["-i", "a.png", "-m-td", "missing.onnx", "--alphabet", "ab#"])

    assert code == 1
    err = capsys.readouterr().err
    assert "reserved symbol" in err


def test_missing_input_is_reported(tmp_path, monkeypatch, capsys) -> None:
    monkeypatch.setattr(
        cli, "build_spotter", lambda args: TextSpotter(StubDetector(), None, PipelineConfig())
    )

    assert cli.main(["-i", str(tmp_path / "missing.png"), "-m-td", "x.onnx"]) == 1
    assert "Error" in capsys.readouterr().err


def test_raw_output_prints_one_line_per_region(tmp_path, monkeypatch, capsys) -> None:
    image_path = tmp_path / "frame.png"
    cv2.imwrite(str(image_path), np.zeros((80, 160, 3), dtype=np.uint8))
    config = PipelineConfig(box_method="cells", min_area=0, min_height=0)
    monkeypatch.setattr(cli, "build_spotter", lambda args: TextSpotter(StubDetector(), None, config))

    code = cli.main(["-i", str(image_path), "-m-td", "x.onnx", "-r"])

    assert code == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 1
    assert len(lines[0].split(",")) == 8


def test_output_dir_receives_annotated_frames(tmp_path, monkeypatch, capsys) -> None:
    image_path = tmp_path / "frame.png"
    cv2.imwrite(str(image_path), np.zeros((80, 160, 3), dtype=np.uint8))
    config = PipelineConfig(box_method="cells", min_area=0, min_height=0)
    monkeypatch.setattr(cli, "build_spotter", lambda args: TextSpotter(StubDetector(), None, config))
    out_dir = tmp_path / "annotated"

    code = cli.main(["-i", str(image_path), "-m-td", "x.onnx", "--output-dir", str(out_dir)])

    assert code == 0
    assert (out_dir / "frame_00001.png").exists()
    assert "frames: 1" in capsys.readouterr().out


class BrokenDetector:
    def infer(self, image):
        raise RuntimeError("detector backend failed")


def test_collaborator_failure_is_reported_as_error(tmp_path, monkeypatch, capsys) -> None:
    image_path = tmp_path / "frame.png"
    cv2.imwrite(str(image_path), np.zeros((80, 160, 3), dtype=np.uint8))
    monkeypatch.setattr(
        cli, "build_spotter", lambda args: TextSpotter(BrokenDetector(), None, PipelineConfig())
    )

    code = cli.main(["-i", str(image_path), "-m-td", "x.onnx", "-r"])

    assert code == 1
    captured = capsys.readouterr()
    assert "Error: detector backend failed" in captured.err
    assert captured.out == ""
