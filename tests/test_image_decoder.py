import base64
from pathlib import Path

import httpx
import pytest

from imagestamp.decoders.image_decoder import ImageSourceLoader, decode_background
from imagestamp.errors import BackgroundDecodeError, ImageLoadError


def test_decode_background_returns_rgba(make_png) -> None:
    image = decode_background(make_png((30, 20), (1, 2, 3, 255)))
    assert image.mode == "RGBA"
    assert image.size == (30, 20)


@pytest.mark.parametrize("data", [b"", b"not-a-real-image"])
def test_decode_background_rejects_bad_bytes(data: bytes) -> None:
    with pytest.raises(BackgroundDecodeError):
        decode_background(data)


def test_loader_reads_local_and_relative_paths(tmp_path: Path, make_png) -> None:
    (tmp_path / "logo.png").write_bytes(make_png((8, 6)))

    assert ImageSourceLoader()(str(tmp_path / "logo.png")).size == (8, 6)
    assert ImageSourceLoader(base_dir=tmp_path).load("logo.png").size == (8, 6)


def test_loader_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(ImageLoadError):
        ImageSourceLoader(base_dir=tmp_path).load("missing.png")


def test_loader_rejects_non_image_file(tmp_path: Path) -> None:
    (tmp_path / "notes.txt").write_text("hello", encoding="utf-8")
    with pytest.raises(ImageLoadError):
        ImageSourceLoader().load(str(tmp_path / "notes.txt"))


def test_loader_decodes_base64_data_uri(make_png) -> None:
    uri = "data:image/png;base64," + base64.b64encode(make_png((5, 4))).decode("ascii")
    assert ImageSourceLoader().load(uri).size == (5, 4)

    with pytest.raises(ImageLoadError):
        ImageSourceLoader().load("data:image/png,rawbytes")
    with pytest.raises(ImageLoadError):
        ImageSourceLoader().load("data:image/png;base64,@@@")


def test_loader_fetches_http_sources(make_png) -> None:
    payload = make_png((7, 3))

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/logo.png":
            return httpx.Response(200, content=payload)
        return httpx.Response(404)

    loader = ImageSourceLoader(transport=httpx.MockTransport(handler))
    assert loader.load("https://cdn.example.com/logo.png").size == (7, 3)
    with pytest.raises(ImageLoadError):
        loader.load("https://cdn.example.com/gone.png")
