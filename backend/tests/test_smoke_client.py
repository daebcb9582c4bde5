"""Smoke client helpers — data-URL encoding, output directory, crop saving."""

import base64

from app.smoke_client import (
    image_to_data_url,
    prepare_output_dir,
    save_base64_image,
    save_detected_dogs,
)


def test_image_to_data_url_uses_extension(tmp_path):
    path = tmp_path / "dog.png"
    path.write_bytes(b"png-bytes")
    assert image_to_data_url(path) == (
        "data:image/png;base64," + base64.b64encode(b"png-bytes").decode()
    )


def test_save_base64_image_strips_prefix(tmp_path):
    out = tmp_path / "crop.jpg"
    save_base64_image("data:image/jpeg;base64," + base64.b64encode(b"abc").decode(), out)
    assert out.read_bytes() == b"abc"


def test_prepare_output_dir_clears_files(tmp_path):
    out = tmp_path / "output"
    out.mkdir()
    (out / "old.jpg").write_bytes(b"old")
    prepare_output_dir(out)
    assert list(out.iterdir()) == []


def test_save_detected_dogs_numbers_from_one(tmp_path):
    result = {"detectedDogs": [
        {"imageData": base64.b64encode(b"one").decode()},
        {"imageData": None},
        {"imageData": base64.b64encode(b"three").decode()},
    ]}
    saved = save_detected_dogs(result, tmp_path)
    assert [p.name for p in saved] == ["detected-dog-1.jpg", "detected-dog-3.jpg"]
    assert (tmp_path / "detected-dog-3.jpg").read_bytes() == b"three"
