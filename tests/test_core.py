import json
import pytest
from datetime import datetime, timezone
from PIL import Image

import clutterlog.metadata.dates as dates_module
from clutterlog import config
from clutterlog.core import BuildPipeline, BuildStage, ClutterlogApp, media_url
from clutterlog.exceptions import StoreCorruptError
from clutterlog.storage.store import MetadataStore
from clutterlog.sync import SyncEngine
from clutterlog.thumbnails.animated import AnimatedThumbnailGenerator
from clutterlog.thumbnails.static import ThumbnailGenerator

from conftest import MissingTranscoder, write_image, set_mtime, fs_source


@pytest.fixture
def exif_for_jpegs(monkeypatch):
    """JPEGs report a fixed DateTimeOriginal, everything else has no tags."""
    def process_file(f, details=False):
        if f.name.endswith('.jpg'):
            return {'EXIF DateTimeOriginal': '2024:01:01 10:00:00'}
        return {}
    monkeypatch.setattr(dates_module.exifread, "process_file", process_file)


def build(site, transcoder, **kwargs):
    app = ClutterlogApp(site)
    kwargs.setdefault('size', 64)
    kwargs.setdefault('max_workers', 2)
    return app.build(transcoder=transcoder, show_progress=False, **kwargs)


def read_gallery(output_dir):
    return json.loads((output_dir / config.GALLERY_FILE).read_text(encoding='utf-8'))


def test_build_image_and_video(site, media_dir, fake_transcoder, exif_for_jpegs):
    write_image(media_dir / "a.jpg", size=(800, 600))
    video = media_dir / "b.mp4"
    video.write_bytes(b"\x00\x00\x00\x18ftypmp42")
    set_mtime(video, datetime(2024, 2, 1))
    out = site / config.BUILD_DIR

    report = build(site, fake_transcoder)

    assert report.ok
    assert report.added == 2
    assert report.items_processed == 2
    for name in ["a.jpg", "a_thumb.jpg", "b.mp4", "b_thumb.webp"]:
        assert (out / config.MEDIA_DIR / name).is_file()
    with Image.open(out / config.MEDIA_DIR / "a_thumb.jpg") as thumb:
        assert thumb.size == (64, 64)

    # Only the video went through the transcoder
    assert [c[0].name for c in fake_transcoder.calls] == ["b.mp4"]

    entries = MetadataStore.for_site(site).load()
    assert entries["a.jpg"].date_source == config.EXIF_ORIGINAL
    assert entries["a.jpg"].datetime == datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
    assert entries["b.mp4"].date_source == fs_source(video)

    gallery = {r['filename']: r for r in read_gallery(out)}
    assert gallery["a.jpg"]['datetime'] == "2024-01-01T10:00:00"
    assert gallery["a.jpg"]['thumb_url'] == "media/a_thumb.jpg"
    assert gallery["b.mp4"]['thumb_url'] == "media/b_thumb.webp"


def test_missing_transcoder_still_builds_static_thumbnails(site, media_dir, no_exif):
    write_image(media_dir / "a.png", size=(300, 200))
    (media_dir / "b.webm").write_bytes(b"\x1aE\xdf\xa3")
    out = site / config.BUILD_DIR

    report = build(site, MissingTranscoder())

    assert not report.ok
    assert [(f.filename, f.stage) for f in report.failures] == [("b.webm", "generating")]
    assert "not installed" in report.failures[0].message
    assert (out / config.MEDIA_DIR / "a_thumb.png").is_file()
    assert not (out / config.MEDIA_DIR / "b_thumb.webp").exists()
    assert [r['filename'] for r in read_gallery(out)] == ["a.png"]


def test_corrupt_image_is_reported_and_build_continues(site, media_dir, fake_transcoder, no_exif):
    (media_dir / "broken.jpg").write_bytes(b"definitely not a jpeg")
    write_image(media_dir / "good.jpg")

    report = build(site, fake_transcoder)

    assert report.items_failed == 1
    assert report.failures[0].filename == "broken.jpg"
    assert "broken.jpg" in report.format()
    assert report.items_processed == 1
    assert (site / config.BUILD_DIR / config.MEDIA_DIR / "good_thumb.jpg").is_file()
    # The store still tracks the file even though its thumbnail failed
    assert "broken.jpg" in MetadataStore.for_site(site).load()


def test_corrupt_store_aborts_the_build(site, media_dir, fake_transcoder, no_exif):
    write_image(media_dir / "a.jpg")
    store_path = site / config.STATE_DIR / config.STORE_FILE
    store_path.parent.mkdir(parents=True)
    store_path.write_text("{ this is not json", encoding='utf-8')

    with pytest.raises(StoreCorruptError):
        build(site, fake_transcoder)

    assert not (site / config.BUILD_DIR / config.MEDIA_DIR / "a_thumb.jpg").exists()
    assert store_path.read_text(encoding='utf-8') == "{ this is not json"


def test_pipeline_reaches_done_and_prunes_removed_files(site, media_dir, fake_transcoder, no_exif):
    write_image(media_dir / "keep.jpg")
    write_image(media_dir / "drop.jpg")
    store = MetadataStore.for_site(site)
    engine = SyncEngine(store)
    engine.update(media_dir)
    (media_dir / "drop.jpg").unlink()

    pipeline = BuildPipeline(
        engine,
        static_generator=ThumbnailGenerator(size=32),
        animated_generator=AnimatedThumbnailGenerator(transcoder=fake_transcoder, size=32),
        max_workers=1,
        show_progress=False,
    )
    assert pipeline.stage == BuildStage.IDLE

    report = pipeline.run(media_dir, site / "out")

    assert pipeline.stage == BuildStage.DONE
    assert report.removed == 1
    assert set(store.load()) == {"keep.jpg"}
    assert [r.filename for r in report.records] == ["keep.jpg"]

def test_colliding_output_names_are_reported(site, media_dir, fake_transcoder, no_exif):
    (media_dir / "clip.mp4").write_bytes(b"clip.mp4")
    (media_dir / "clip.gif").write_bytes(b"GIF89a")
    write_image(media_dir / "pic.jpg")
    write_image(media_dir / "pic_thumb.jpg", size=(80, 60))
    write_image(media_dir / "solo.jpg")
    out = site / config.BUILD_DIR

    report = build(site, fake_transcoder, size=16)

    assert not report.ok
    assert {f.filename for f in report.failures} == {"clip.mp4", "clip.gif", "pic.jpg", "pic_thumb.jpg"}
    clip_failure = next(f for f in report.failures if f.filename == "clip.mp4")
    assert "clip_thumb.webp" in clip_failure.message
    assert "clip.gif" in clip_failure.message
    assert fake_transcoder.calls == []
    assert not (out / config.MEDIA_DIR / "clip_thumb.webp").exists()
    assert not (out / config.MEDIA_DIR / "pic_thumb.jpg").exists()
    assert [r['filename'] for r in read_gallery(out)] == ["solo.jpg"]



def test_sidecar_and_base_url_flow_into_records(site, media_dir, fake_transcoder, no_exif):
    write_image(media_dir / "sunset at sea.jpg")
    (media_dir / "sunset at sea.txt").write_text("Sunset\nTaken from the ferry.\n", encoding='utf-8')
    out = site / "public"

    build(site, fake_transcoder, output_dir=out, base_url="https://example.org/gallery/")

    record, = read_gallery(out)
    assert record['title'] == "Sunset"
    assert record['description'] == "Taken from the ferry."
    assert record['image_url'] == "https://example.org/gallery/media/sunset%20at%20sea.jpg"
    assert record['thumb_url'] == "https://example.org/gallery/media/sunset%20at%20sea_thumb.jpg"
    # Sidecars are not media
    assert not (out / config.MEDIA_DIR / "sunset at sea.txt").exists()


def test_report_sizes_match_output(site, media_dir, fake_transcoder, no_exif):
    src = write_image(media_dir / "a.png", size=(120, 90))
    out = site / config.BUILD_DIR

    report = build(site, fake_transcoder)

    assert report.total_media_bytes == src.stat().st_size
    assert report.total_thumb_bytes == (out / config.MEDIA_DIR / "a_thumb.png").stat().st_size


def test_empty_media_directory_builds_empty_gallery(site, fake_transcoder):
    report = build(site, fake_transcoder)

    assert report.ok
    assert report.items_processed == 0
    assert read_gallery(site / config.BUILD_DIR) == []


@pytest.mark.parametrize("base_url, expected", [
    ("", "media/a.jpg"),
    ("/", "media/a.jpg"),
    ("https://cdn.example.org", "https://cdn.example.org/media/a.jpg"),
    ("https://cdn.example.org/", "https://cdn.example.org/media/a.jpg"),
])
def test_media_url(base_url, expected):
    assert media_url(base_url, "a.jpg") == expected
