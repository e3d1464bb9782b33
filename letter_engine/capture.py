from __future__ import annotations

import base64
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator

import cv2
import numpy as np
from PIL import Image

from .utils import ensure_dir


IMAGE_EXTS = {".png", ".jpg", ".jpeg", ".webp", ".bmp", ".tif", ".tiff"}
DATA_URL_PREFIX = "data:image/jpeg;base64,"


class CaptureError(RuntimeError):
    pass


def image_to_data_url(image: Image.Image, quality: int = 80) -> str:
    """Encode a PIL image as a JPEG data URL."""
    buf = BytesIO()
    image.convert("RGB").save(buf, format="JPEG", quality=int(quality))
    return DATA_URL_PREFIX + base64.b64encode(buf.getvalue()).decode("ascii")


def strip_data_url(url: str) -> str:
    """Return the base64 payload of a data URL; bare base64 passes through."""
    head, sep, payload = url.partition(",")
    return payload if sep and payload else url


def data_url_to_image(url: str) -> Image.Image:
    raw = base64.b64decode(strip_data_url(url))
    return Image.open(BytesIO(raw)).convert("RGB")


def save_data_url(url: str, out_path: str | Path) -> Path:
    out = Path(out_path)
    ensure_dir(out.parent)
    out.write_bytes(base64.b64decode(strip_data_url(url)))
    return out


def _open_image(path: Path) -> Image.Image:
    try:
        return Image.open(path).convert("RGB")
    except OSError as e:
        # includes UnidentifiedImageError
        raise CaptureError(f"unreadable image: {path}: {e}") from e


@dataclass(frozen=True)
class UploadProvider:
    """Turn uploaded files (images, image folders, PDFs) into page images."""

    inputs: tuple[str, ...]
    pdf_dpi: int = 150

    def iter_pages(self) -> Iterator[tuple[str, Image.Image]]:
        for raw in self.inputs:
            path = Path(raw)
            if not path.exists():
                raise CaptureError(f"input not found: {path}")
            if path.is_dir():
                yield from self._iter_image_folder(path)
            elif path.suffix.lower() == ".pdf":
                yield from self._iter_pdf_pages(path)
            elif path.suffix.lower() in IMAGE_EXTS:
                yield path.name, _open_image(path)
            else:
                raise CaptureError(f"unsupported input type: {path.suffix or path.name}")

    def _iter_image_folder(self, folder: Path) -> Iterator[tuple[str, Image.Image]]:
        files = sorted([p for p in folder.iterdir() if p.suffix.lower() in IMAGE_EXTS])
        for img_path in files:
            yield f"{folder.name}/{img_path.name}", _open_image(img_path)

    def _iter_pdf_pages(self, pdf_path: Path) -> Iterator[tuple[str, Image.Image]]:
        try:
            import fitz  # PyMuPDF
        except Exception as e:  # pragma: no cover
            raise CaptureError("PyMuPDF is required for PDF input. Install pymupdf.") from e

        try:
            doc = fitz.open(pdf_path)
        except Exception as e:
            raise CaptureError(f"unreadable pdf: {pdf_path}: {e}") from e
        zoom = self.pdf_dpi / 72.0
        matrix = fitz.Matrix(zoom, zoom)
        try:
            for i in range(doc.page_count):
                p = doc.load_page(i)
                pix = p.get_pixmap(matrix=matrix, alpha=False)
                img = Image.open(BytesIO(pix.tobytes("png"))).convert("RGB")
                yield f"{pdf_path.name}#page={i + 1}", img
        finally:
            doc.close()

    def data_urls(self, quality: int = 80) -> list[str]:
        return [image_to_data_url(img, quality=quality) for _, img in self.iter_pages()]


def _frame_to_image(frame: np.ndarray) -> Image.Image:
    rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
    return Image.fromarray(rgb)


Constraint = tuple[int, int] | None


def normalize_constraints(raw: Iterable[Any] | None) -> list[Constraint]:
    """[[1920, 1080], null] -> [(1920, 1080), None]."""
    out: list[Constraint] = []
    for c in raw or []:
        if c is None:
            out.append(None)
        else:
            w, h = c
            out.append((int(w), int(h)))
    return out or [None]


@dataclass
class CameraSession:
    """Live camera feed with constraint fallback and restart on lost frames.

    Constraints are tried in order; the first that opens the device AND yields
    a frame wins. `pause()`/`resume()` release and re-acquire the device, which
    is how a hidden window hands the camera back to the OS.
    """

    device_index: int = 0
    constraints: list[Constraint] = field(default_factory=lambda: [(1920, 1080), (1280, 720), None])
    opener: Callable[[int], Any] = cv2.VideoCapture
    _cap: Any | None = None
    active_constraint: Constraint = None
    restarts: int = 0

    @property
    def is_open(self) -> bool:
        return self._cap is not None

    def open(self) -> None:
        if self._cap is not None:
            return
        errors: list[str] = []
        for constraint in self.constraints:
            cap = self.opener(self.device_index)
            if not cap.isOpened():
                cap.release()
                errors.append(f"{constraint}: device_unavailable")
                continue
            if constraint is not None:
                cap.set(cv2.CAP_PROP_FRAME_WIDTH, constraint[0])
                cap.set(cv2.CAP_PROP_FRAME_HEIGHT, constraint[1])
            ok, _ = cap.read()
            if not ok:
                cap.release()
                errors.append(f"{constraint}: no_frame")
                continue
            self._cap = cap
            self.active_constraint = constraint
            return
        raise CaptureError("Unable to access camera: " + "; ".join(errors))

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None

    def pause(self) -> None:
        self.close()

    def resume(self) -> None:
        self.open()

    def _restart(self) -> None:
        self.close()
        self.restarts += 1
        self.open()

    def read_frame(self) -> Image.Image:
        if self._cap is None:
            self.open()
        ok, frame = self._cap.read()
        if not ok or frame is None:
            # track ended or device was taken away: re-acquire once
            self._restart()
            ok, frame = self._cap.read()
            if not ok or frame is None:
                raise CaptureError("camera returned no frame after restart")
        return _frame_to_image(frame)

    def __enter__(self) -> "CameraSession":
        self.open()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


@dataclass
class CaptureBatch:
    """Pages captured for one letter, in order."""

    quality: int = 80
    images: list[str] = field(default_factory=list)

    def add(self, image: Image.Image) -> str:
        url = image_to_data_url(image, quality=self.quality)
        self.images.append(url)
        return url

    def add_data_url(self, url: str) -> None:
        self.images.append(url)

    def remove(self, index: int) -> None:
        if not 0 <= index < len(self.images):
            raise IndexError(f"no captured page at index {index}")
        del self.images[index]

    def finish(self) -> list[str]:
        if not self.images:
            raise CaptureError("no pages captured")
        return list(self.images)


def capture_from_camera(session: CameraSession, frames: int, quality: int = 80) -> list[str]:
    batch = CaptureBatch(quality=quality)
    with session:
        for _ in range(max(0, frames)):
            batch.add(session.read_frame())
    return batch.finish()
