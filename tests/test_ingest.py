# tests/test_ingest.py

import io
import time

import pytest
import numpy as np
import cv2
from PIL import Image

from photosweep.core.batch_processor import BatchProcessor
from photosweep.core.errors import BatchLimitError, UnsupportedFormatError
from photosweep.core.ingest import PhotoIngestor
from photosweep.utils.logging_config import PerformanceLogger

@pytest.fixture
def ingestor():
    return PhotoIngestor()

@pytest.fixture
def processor():
    return BatchProcessor(n_workers=2, use_threading=True)

@pytest.fixture
def test_images(tmp_path):
    """Create test images"""
    paths = []
    for i in range(3):
        img = np.random.randint(0, 255, (120, 160, 3), dtype=np.uint8)
        path = tmp_path / f"test_{i}.png"
        cv2.imwrite(str(path), img)
        paths.append(path)
    return paths

def _png_bytes(color=(200, 30, 30), size=(64, 48)):
    buf = io.BytesIO()
    Image.new('RGB', size, color).save(buf, format='PNG')
    return buf.getvalue()

def test_ingest_report_fields(ingestor, test_images):
    report = ingestor.ingest_file(test_images[0])

    assert report.filename == "test_0.png"
    assert report.size == test_images[0].stat().st_size
    assert len(report.content_hash) == 64
    assert len(report.perceptual_hash) == 64
    assert (report.width, report.height) == (160, 120)
    assert report.format == 'png'
    assert report.thumbnail is not None
    assert report.warnings == []
    assert report.path == str(test_images[0])

def test_bytes_and_file_hash_match(ingestor, test_images):
    data = test_images[1].read_bytes()

    from_bytes = ingestor.ingest(data, "copy.png")
    from_file = ingestor.ingest_file(test_images[1])
    assert from_bytes.content_hash == from_file.content_hash
    assert from_bytes.perceptual_hash == from_file.perceptual_hash

def test_blur_flag_follows_threshold(ingestor):
    data = _png_bytes()

    assert ingestor.ingest(data, "flat.png").is_blurry is True
    assert ingestor.ingest(data, "flat.png", blur_threshold=0.0).is_blurry is False

def test_unsupported_file_is_rejected(ingestor):
    with pytest.raises(UnsupportedFormatError):
        ingestor.ingest(b"%PDF-1.4 ...", "document.pdf")

def test_undecodable_file_degrades(ingestor, tmp_path):
    """The upload is kept with neutral metrics and warnings"""
    path = tmp_path / "broken.jpg"
    path.write_bytes(b"garbage bytes that are not a jpeg" * 10)

    report = ingestor.ingest_file(path)

    assert report.quality.fallback is True
    assert report.quality.quality == 0.5
    assert report.perceptual_hash is None
    assert report.thumbnail is None
    assert report.content_hash is not None
    assert any(w.startswith("DecodeError") for w in report.warnings)
    assert any(w.startswith("ThumbnailError") for w in report.warnings)

def test_report_to_dict(ingestor):
    data = ingestor.ingest(_png_bytes(), "red.png").to_dict()

    assert data['filename'] == "red.png"
    assert data['has_thumbnail'] is True
    assert 'thumbnail' not in data

def test_batch_partial_success(ingestor, processor, test_images, tmp_path):
    """One bad file does not stop the others"""
    bad = tmp_path / "notes.txt"
    bad.write_text("hello")
    files = [test_images[0], bad, test_images[1], ("upload.png", _png_bytes())]

    result = processor.ingest_batch(ingestor, files)

    assert [r.filename for r in result.processed] == ["test_0.png", "test_1.png", "upload.png"]
    assert len(result.errors) == 1
    assert result.errors[0].filename == "notes.txt"
    assert result.errors[0].reason == "UnsupportedFormat"
    assert result.success is False
    assert result.to_dict()['uploaded'] == 3

def test_batch_missing_file(ingestor, processor, tmp_path):
    result = processor.ingest_batch(ingestor, [tmp_path / "gone.png"])

    assert result.processed == []
    assert result.errors[0].reason == "HashError"

def test_batch_limit(ingestor, processor):
    files = [(f"f{i}.png", b"x") for i in range(11)]
    with pytest.raises(BatchLimitError):
        processor.ingest_batch(ingestor, files)

def test_empty_batch(ingestor, processor):
    result = processor.ingest_batch(ingestor, [])
    assert result.success
    assert result.processed == []

def test_batch_records_metric(ingestor, test_images):
    metrics = PerformanceLogger()
    processor = BatchProcessor(n_workers=2, use_threading=True,
                               performance_logger=metrics)
    processor.ingest_batch(ingestor, test_images)

    stats = metrics.get_statistics('ingest_batch')
    assert stats['count'] == 1
    assert metrics.metrics[0]['files'] == 3

def test_timeout_scales_with_size():
    processor = BatchProcessor(n_workers=1, timeout_base=10.0, timeout_per_mb=2.0)

    assert processor.timeout_for(0) == 10.0
    assert processor.timeout_for(5 * 1024 * 1024) == pytest.approx(20.0)

class SleepyIngestor:
    """Stands in for PhotoIngestor; each upload's bytes give its runtime"""

    def ingest(self, data, filename, blur_threshold=None):
        time.sleep(float(data.decode()))
        return filename

def test_slow_file_times_out_on_its_own_budget():
    """The quick file's runtime is not added to the slow file's budget"""
    processor = BatchProcessor(n_workers=2, use_threading=True,
                               timeout_base=0.6, timeout_per_mb=0.0)
    files = [("quick.png", b"0.4"), ("slow.png", b"0.9")]

    result = processor.ingest_batch(SleepyIngestor(), files)

    assert result.processed == ["quick.png"]
    assert [(e.filename, e.reason) for e in result.errors] == [("slow.png", "Timeout")]

def test_queued_files_are_not_charged_for_waiting():
    """With one worker, each file's clock starts when it begins running"""
    processor = BatchProcessor(n_workers=1, use_threading=True,
                               timeout_base=0.6, timeout_per_mb=0.0)
    files = [(f"f{i}.png", b"0.3") for i in range(3)]

    result = processor.ingest_batch(SleepyIngestor(), files)

    assert result.processed == ["f0.png", "f1.png", "f2.png"]
    assert result.errors == []

def test_default_process_pool(ingestor, test_images, tmp_path):
    """The process-pool executor returns reports and per-file failures"""
    broken = tmp_path / "broken.jpg"
    broken.write_bytes(b"garbage bytes that are not a jpeg" * 10)
    notes = tmp_path / "notes.txt"
    notes.write_text("hello")

    processor = BatchProcessor(n_workers=2)
    assert processor.use_threading is False
    result = processor.ingest_batch(ingestor, [test_images[0], broken, notes])

    assert [r.filename for r in result.processed] == ["test_0.png", "broken.jpg"]
    assert result.processed[0].perceptual_hash is not None
    assert result.processed[1].quality.fallback is True
    assert [(e.filename, e.reason) for e in result.errors] == [("notes.txt", "UnsupportedFormat")]
