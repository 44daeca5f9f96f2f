import io

import pytest
from PIL import Image

from photofolio.decoder import PhotoDecoder, read_exif
from photofolio.errors import FetchFailure
from photofolio.tags import TagType, caption, taken_at


def _jpeg(size=(64, 48), exif=None) -> io.BytesIO:
    image = Image.new("RGB", size, (200, 120, 40))
    for x in range(size[0] // 2):
        image.putpixel((x, x % size[1]), (0, 0, 0))

    buf = io.BytesIO()
    if exif is None:
        image.save(buf, "JPEG")
    else:
        image.save(buf, "JPEG", exif=exif)
    buf.seek(0)
    return buf


def test_decode_reads_dimensions_hash_and_tags():
    exif = Image.Exif()
    exif[0x010E] = "Harbour at dawn"
    exif[0x0132] = "2022:08:15 06:45:00"
    exif[0x0112] = 1

    decoded = PhotoDecoder().decode(_jpeg(exif=exif))

    assert (decoded.width, decoded.height) == (64, 48)
    assert len(decoded.perceptual_hash) == 16
    assert decoded.tags["ImageDescription"].type is TagType.ASCII
    assert decoded.tags["Orientation"].type is TagType.SHORT
    assert decoded.tags["Orientation"].value == 1
    assert caption(decoded.tags) == "Harbour at dawn"
    assert taken_at(decoded.tags).year == 2022


def test_decode_without_exif():
    decoded = PhotoDecoder().decode(_jpeg(size=(20, 30)))

    assert (decoded.width, decoded.height) == (20, 30)
    assert decoded.tags is None


def test_same_pixels_give_same_hash():
    first = PhotoDecoder().decode(_jpeg())
    second = PhotoDecoder().decode(_jpeg())

    assert first.perceptual_hash == second.perceptual_hash


def test_undecodable_stream_is_a_fetch_failure():
    with pytest.raises(FetchFailure):
        PhotoDecoder().decode(io.BytesIO(b"this is not a jpeg"))


def test_unreadable_exif_block_gives_no_tags():
    assert read_exif(b"Exif\x00\x00garbage!") == {}


def test_oversized_image_is_a_fetch_failure(monkeypatch):
    stream = _jpeg(size=(64, 48))
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)

    with pytest.raises(FetchFailure, match="cannot decode image"):
        PhotoDecoder().decode(stream)
