"""End-to-end: dispatcher -> processor -> geocoder -> placement, with a fake Nominatim."""
import zipfile
from pathlib import Path

import pytest

from photo_intake import copier
from photo_intake.archives import ArchiveExpander, WORKSPACE_PREFIX
from photo_intake.geocoder import ReverseGeocoder
from photo_intake.services.dispatcher import Dispatcher
from photo_intake.services.processor import PhotoProcessor

from conftest import FakeGeolocator, make_jpeg


def build(config, address=None, error=None, temp_root=None):
    geolocator = FakeGeolocator(address=address, error=error)
    processor = PhotoProcessor(config, ReverseGeocoder(config, geolocator=geolocator, sleep=lambda s: None))
    dispatcher = Dispatcher(config, processor, sleep=lambda s: None)
    if temp_root is not None:
        dispatcher.expander = ArchiveExpander(config, dispatcher.dispatch_tree, temp_root)
    return dispatcher, geolocator


def tree(root: Path):
    return sorted(str(p.relative_to(root)).replace("\\", "/") for p in root.rglob("*") if p.is_file())


def test_photo_without_gps(config):
    photo = make_jpeg(config.input_dir / "IMG.jpg", taken="2023:06:15 12:00:00")
    dispatcher, geolocator = build(config)

    dispatcher.dispatch(photo)

    assert tree(config.output_dir) == [
        "ByDate/2023/06/15/IMG.jpg",
        "ByLocation/UnknownLocation/IMG.jpg",
    ]
    assert geolocator.calls == []
    assert photo.exists()


def test_photo_with_gps_is_filed_by_location(config):
    photo = make_jpeg(config.input_dir / "IMG.jpg", taken="2024:01:02 08:00:00", gps=(48.8566, 2.3522))
    dispatcher, geolocator = build(config, address={"country": "France", "city": "Paris"})

    dispatcher.dispatch(photo)

    assert tree(config.output_dir) == [
        "ByDate/2024/01/02/IMG.jpg",
        "ByLocation/France/Paris/IMG.jpg",
    ]
    (lat, lon), = geolocator.calls
    assert lat == pytest.approx(48.8566, abs=1e-6)
    assert lon == pytest.approx(2.3522, abs=1e-6)
    assert (config.output_dir / "ByLocation/France/Paris/IMG.jpg").read_bytes() == photo.read_bytes()


def test_geocoding_failure_falls_back_to_unknown_location(config):
    photo = make_jpeg(config.input_dir / "IMG.jpg", taken="2024:01:02 08:00:00", gps=(10.0, 20.0))
    dispatcher, _ = build(config, error=OSError("network down"))
    dispatcher.dispatch(photo)
    assert (config.output_dir / "ByLocation/UnknownLocation/IMG.jpg").exists()


def test_zip_of_two_photos(config, tmp_path):
    staging = tmp_path / "staging"
    a = make_jpeg(staging / "a.jpg", taken="2022:12:24 18:00:00")
    b = make_jpeg(staging / "sub" / "b.jpg", taken="2021:03:01 07:00:00")
    archive = config.input_dir / "trip.zip"
    archive.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(archive, "w") as zf:
        zf.write(a, "a.jpg")
        zf.write(b, "sub/b.jpg")
    temp_root = tmp_path / "tmp"
    temp_root.mkdir()
    dispatcher, _ = build(config, temp_root=temp_root)

    dispatcher.dispatch(archive)

    assert tree(config.output_dir) == [
        "ByDate/2021/03/01/b.jpg",
        "ByDate/2022/12/24/a.jpg",
        "ByLocation/UnknownLocation/a.jpg",
        "ByLocation/UnknownLocation/b.jpg",
    ]
    assert [p for p in temp_root.iterdir() if p.name.startswith(WORKSPACE_PREFIX)] == []
    assert archive.exists()


def test_same_name_photos_processed_concurrently(config):
    photos = [make_jpeg(config.input_dir / f"cam{i}" / "IMG.jpg", taken="2023:06:15 12:00:00")
              for i in range(4)]
    dispatcher, _ = build(config)

    dispatcher.dispatch_tree(config.input_dir)

    by_date = sorted(p.name for p in (config.output_dir / "ByDate/2023/06/15").iterdir())
    assert by_date == ["IMG.jpg", "IMG_1.jpg", "IMG_2.jpg", "IMG_3.jpg"]
    by_location = sorted(p.name for p in (config.output_dir / "ByLocation/UnknownLocation").iterdir())
    assert by_location == by_date
    assert all(p.exists() for p in photos)


def test_backlog_with_unsupported_and_broken_files(config):
    make_jpeg(config.input_dir / "good.jpg", taken="2020:02:29 10:00:00")
    (config.input_dir / "readme.txt").write_text("ignore me")
    (config.input_dir / ".hidden.jpg").write_bytes(b"x")
    (config.input_dir / "bad.zip").write_bytes(b"not a zip")
    dispatcher, _ = build(config)

    assert dispatcher.dispatch_tree(config.input_dir) == 4

    assert tree(config.output_dir) == [
        "ByDate/2020/02/29/good.jpg",
        "ByLocation/UnknownLocation/good.jpg",
    ]


def test_placement_failure_is_contained(config, monkeypatch):
    make_jpeg(config.input_dir / "one.jpg", taken="2020:01:01 00:00:00")
    make_jpeg(config.input_dir / "two.jpg", taken="2020:01:01 00:00:00")
    real_place = copier.place_file

    def place(src, dest_dir):
        if src.name == "one.jpg":
            raise PermissionError("read-only output")
        return real_place(src, dest_dir)

    monkeypatch.setattr("photo_intake.services.processor.place_file", place)
    dispatcher, _ = build(config)
    dispatcher.dispatch_tree(config.input_dir)

    assert tree(config.output_dir) == [
        "ByDate/2020/01/01/two.jpg",
        "ByLocation/UnknownLocation/two.jpg",
    ]
