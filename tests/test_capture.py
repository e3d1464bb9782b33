"""Page capture: uploads (images, folders, PDFs) and the camera session."""
from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from PIL import Image, ImageDraw

from letter_engine.capture import (
    CameraSession,
    CaptureBatch,
    CaptureError,
    UploadProvider,
    capture_from_camera,
    data_url_to_image,
    image_to_data_url,
    normalize_constraints,
    strip_data_url,
)


def _letter_image(size=(200, 280)) -> Image.Image:
    img = Image.new("RGB", size, color=(255, 255, 255))
    draw = ImageDraw.Draw(img)
    draw.rectangle([20, 20, 180, 40], fill=(0, 0, 0))
    return img


class FakeCapture:
    """cv2.VideoCapture stand-in driven by a script of read() results."""

    def __init__(self, opened: bool, reads: list[bool]):
        self.opened = opened
        self.reads = list(reads)
        self.props: dict[int, float] = {}
        self.released = False

    def isOpened(self):
        return self.opened

    def set(self, prop, value):
        self.props[prop] = value
        return True

    def read(self):
        ok = self.reads.pop(0) if self.reads else True
        if not ok:
            return False, None
        return True, np.zeros((10, 12, 3), dtype=np.uint8)

    def release(self):
        self.released = True


class FakeOpener:
    def __init__(self, captures: list[FakeCapture]):
        self.captures = list(captures)
        self.opened: list[FakeCapture] = []

    def __call__(self, index: int) -> FakeCapture:
        cap = self.captures.pop(0)
        self.opened.append(cap)
        return cap


# ═══════════════════════════════════════════════════════════════════════════════
# DATA URL / UPLOAD TESTS
# ═══════════════════════════════════════════════════════════════════════════════

class TestUploads:

    def test_data_url_round_trip(self):
        url = image_to_data_url(_letter_image(), quality=80)
        assert url.startswith("data:image/jpeg;base64,")
        assert data_url_to_image(url).size == (200, 280)
        assert strip_data_url("QUJD") == "QUJD"

    def test_folder_pages_sorted(self, workspace_dir: Path):
        folder = workspace_dir / "letter"
        folder.mkdir()
        _letter_image((100, 100)).save(folder / "page_2.png")
        _letter_image((50, 50)).save(folder / "page_1.png")
        (folder / "notes.txt").write_text("ignore me", encoding="utf-8")
        pages = list(UploadProvider(inputs=(str(folder),)).iter_pages())
        assert [name for name, _ in pages] == ["letter/page_1.png", "letter/page_2.png"]

    def test_pdf_pages(self, workspace_dir: Path):
        pdf = workspace_dir / "letter.pdf"
        _letter_image().save(pdf, format="PDF", save_all=True, append_images=[_letter_image()])
        urls = UploadProvider(inputs=(str(pdf),), pdf_dpi=72).data_urls()
        assert len(urls) == 2

    def test_bad_inputs(self, workspace_dir: Path):
        with pytest.raises(CaptureError, match="not found"):
            list(UploadProvider(inputs=(str(workspace_dir / "missing.txt"),)).iter_pages())
        with pytest.raises(CaptureError, match="not found"):
            list(UploadProvider(inputs=(str(workspace_dir / "missing.png"),)).iter_pages())
        with pytest.raises(CaptureError, match="not found"):
            list(UploadProvider(inputs=(str(workspace_dir / "missing.pdf"),)).iter_pages())
        broken = workspace_dir / "broken.png"
        broken.write_bytes(b"not an image")
        with pytest.raises(CaptureError, match="unreadable image"):
            list(UploadProvider(inputs=(str(broken),)).iter_pages())
        doc = workspace_dir / "letter.docx"
        doc.write_bytes(b"PK")
        with pytest.raises(CaptureError, match="unsupported"):
            list(UploadProvider(inputs=(str(doc),)).iter_pages())


# ═══════════════════════════════════════════════════════════════════════════════
# CAMERA TESTS
# ═══════════════════════════════════════════════════════════════════════════════

class TestCameraSession:

    def test_normalize_constraints(self):
        assert normalize_constraints([[1920, 1080], None]) == [(1920, 1080), None]
        assert normalize_constraints(None) == [None]

    def test_falls_back_through_constraints(self):
        unavailable = FakeCapture(opened=False, reads=[])
        no_frame = FakeCapture(opened=True, reads=[False])
        good = FakeCapture(opened=True, reads=[True])
        opener = FakeOpener([unavailable, no_frame, good])
        session = CameraSession(constraints=[(1920, 1080), (1280, 720), None], opener=opener)
        session.open()
        assert session.active_constraint is None
        assert unavailable.released and no_frame.released
        assert not good.released
        assert no_frame.props  # resolution was requested before reading

    def test_all_constraints_fail(self):
        opener = FakeOpener([FakeCapture(opened=False, reads=[]) for _ in range(2)])
        session = CameraSession(constraints=[(1280, 720), None], opener=opener)
        with pytest.raises(CaptureError, match="Unable to access camera"):
            session.open()

    def test_restart_after_lost_frame(self):
        first = FakeCapture(opened=True, reads=[True, False])
        second = FakeCapture(opened=True, reads=[True, True])
        session = CameraSession(constraints=[None], opener=FakeOpener([first, second]))
        img = session.read_frame()
        assert img.size == (12, 10)
        assert session.restarts == 1
        assert first.released

    def test_pause_releases_and_resume_reacquires(self):
        caps = [FakeCapture(opened=True, reads=[]), FakeCapture(opened=True, reads=[])]
        session = CameraSession(constraints=[None], opener=FakeOpener(caps))
        session.open()
        session.pause()
        assert caps[0].released and not session.is_open
        session.resume()
        assert session.is_open

    def test_capture_from_camera(self):
        cap = FakeCapture(opened=True, reads=[])
        session = CameraSession(constraints=[None], opener=FakeOpener([cap]))
        urls = capture_from_camera(session, frames=3)
        assert len(urls) == 3
        assert cap.released


class TestCaptureBatch:

    def test_add_remove_finish(self):
        batch = CaptureBatch()
        batch.add(_letter_image())
        batch.add_data_url("data:image/jpeg;base64,AA==")
        batch.remove(0)
        assert batch.finish() == ["data:image/jpeg;base64,AA=="]
        with pytest.raises(IndexError):
            batch.remove(5)

    def test_empty_batch(self):
        with pytest.raises(CaptureError, match="no pages captured"):
            CaptureBatch().finish()
