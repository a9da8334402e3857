# tests/test_library.py

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from pathlib import Path
import shutil

import pytest
import numpy as np
import cv2

from photosweep.config import SystemConfig
from photosweep.core.database import PhotoDatabase
from photosweep.core.errors import PhotoNotFoundError
from photosweep.core.library import PhotoLibrary

@pytest.fixture
def config(tmp_path):
    config = SystemConfig(use_threading=True, n_workers=2,
                          database_path=str(tmp_path / "photos.db"),
                          thumbnail_dir=str(tmp_path / "thumbs"))
    return config

@pytest.fixture
def library(config):
    library = PhotoLibrary(config)
    yield library
    library.close()

@pytest.fixture
def image_dir(tmp_path):
    """Two distinct images plus a byte copy of the first"""
    folder = tmp_path / "images"
    folder.mkdir()
    for i in range(2):
        img = np.random.randint(0, 255, (80, 100, 3), dtype=np.uint8)
        cv2.imwrite(str(folder / f"img_{i}.png"), img)
    shutil.copy(folder / "img_0.png", folder / "img_0_copy.png")
    return folder

def test_import_and_group(library, image_dir):
    result = library.import_files('alice', sorted(image_dir.glob('*.png')))
    assert len(result.processed) == 3
    assert result.success

    duplicates = library.refresh_duplicates('alice')
    assert len(duplicates) == 1

    photos = {p.photo_id: p for p in library.database.list_photos('alice')}
    duplicate = photos[duplicates[0].photo_id]
    representative = photos[duplicates[0].duplicate_group]
    assert duplicate.content_hash == representative.content_hash
    assert representative.created_at >= duplicate.created_at

def test_thumbnails_written(library, image_dir):
    library.import_files('alice', [image_dir / "img_1.png"])
    photo = library.database.list_photos('alice')[0]

    assert photo.thumbnail_path is not None
    assert Path(photo.thumbnail_path).exists()
    assert photo.mime_type == 'image/png'

def test_newest_copy_is_representative(library, image_dir):
    path = image_dir / "img_0.png"
    report = library.ingestor.ingest_file(path)
    old = library.add_report('bob', report, created_at=datetime(2024, 1, 1))
    new = library.add_report('bob', report, created_at=datetime(2024, 1, 2))

    duplicates = library.refresh_duplicates('bob')
    assert [(a.photo_id, a.duplicate_group) for a in duplicates] == \
        [(old.photo_id, new.photo_id)]

def test_trash_clears_duplicate_on_next_pass(library, image_dir):
    report = library.ingestor.ingest_file(image_dir / "img_0.png")
    old = library.add_report('bob', report, created_at=datetime(2024, 1, 1))
    new = library.add_report('bob', report, created_at=datetime(2024, 1, 2))
    library.refresh_duplicates('bob')

    library.trash('bob', new.photo_id)
    assert library.refresh_duplicates('bob') == []
    assert library.database.get_photo('bob', old.photo_id).is_duplicate is False

def test_users_are_isolated(library, image_dir):
    report = library.ingestor.ingest_file(image_dir / "img_0.png")
    library.add_report('alice', report)
    library.add_report('bob', report)

    assert library.refresh_duplicates('alice') == []
    assert library.refresh_duplicates('bob') == []
    assert library.stats('alice').total_photos == 1

def test_lifecycle(library, image_dir):
    report = library.ingestor.ingest_file(image_dir / "img_1.png")
    photo = library.add_report('carol', report)

    assert library.toggle_favorite('carol', photo.photo_id).favorite is True
    assert library.get_photo('carol', photo.photo_id).views == 1

    library.trash('carol', photo.photo_id)
    with pytest.raises(PhotoNotFoundError):
        library.toggle_favorite('carol', photo.photo_id)
    assert library.restore('carol', photo.photo_id).status == 'active'

    library.trash('carol', photo.photo_id)
    assert library.purge('carol', photo.photo_id).status == 'deleted'
    removed = library.empty_purged('carol')
    assert [p.photo_id for p in removed] == [photo.photo_id]
    assert not Path(photo.thumbnail_path).exists()

    with pytest.raises(PhotoNotFoundError):
        library.get_photo('carol', photo.photo_id)

def test_restore_requires_trash(library, image_dir):
    photo = library.add_report('dave', library.ingestor.ingest_file(image_dir / "img_1.png"))
    with pytest.raises(PhotoNotFoundError):
        library.restore('dave', photo.photo_id)

def test_tags(library, image_dir):
    photo = library.add_report('erin', library.ingestor.ingest_file(image_dir / "img_1.png"))

    tagged = library.set_tags('erin', photo.photo_id, [' beach ', 'summer'])
    assert tagged.tags == ('beach', 'summer')

    with pytest.raises(ValueError):
        library.set_tags('erin', photo.photo_id, ['x' * 21])

def test_list_photos_paginates(library, image_dir):
    report = library.ingestor.ingest_file(image_dir / "img_1.png")
    start = datetime(2024, 3, 1)
    for i in range(5):
        library.add_report('frank', report, created_at=start + timedelta(days=i))

    page = library.list_photos('frank', limit=2, page=3)
    assert len(page.photos) == 1
    assert page.pagination.total == 5
    assert page.photos[0].created_at == start

def test_database_round_trip(tmp_path, library, image_dir):
    photo = library.add_report('gina', library.ingestor.ingest_file(image_dir / "img_1.png"))

    reopened = PhotoDatabase(library.config.database_path)
    try:
        stored = reopened.get_photo('gina', photo.photo_id)
    finally:
        reopened.close()
    assert stored == photo

def test_blurry_and_screenshot_views(library, tmp_path):
    folder = tmp_path / "mixed"
    folder.mkdir()
    cv2.imwrite(str(folder / "black.png"), np.zeros((40, 40, 3), dtype=np.uint8))
    y, x = np.indices((64, 64))
    board = ((x + y) % 2 * 255).astype(np.uint8)
    cv2.imwrite(str(folder / "board.png"), board)

    library.import_files('hank', sorted(folder.glob('*.png')))

    assert [p.original_name for p in library.find_blurry('hank')] == ['black.png']
    assert len(library.find_screenshots('hank')) == 2
    assert library.stats('hank').blurry_photos == 1

def test_concurrent_users_share_one_connection(library, image_dir):
    """Parallel writes and grouping passes for different users stay consistent"""
    report = library.ingestor.ingest_file(image_dir / "img_0.png")
    users = [f"user{i}" for i in range(6)]

    def fill_and_group(user_id):
        for day in range(5):
            library.add_report(user_id, report, created_at=datetime(2024, 1, 1 + day))
        return len(library.refresh_duplicates(user_id))

    with ThreadPoolExecutor(max_workers=len(users)) as executor:
        counts = list(executor.map(fill_and_group, users))

    assert counts == [4] * len(users)
    for user_id in users:
        photos = library.database.list_photos(user_id, newest_first=True)
        assert len(photos) == 5
        assert [p.is_duplicate for p in photos] == [False, True, True, True, True]
        assert {p.duplicate_group for p in photos[1:]} == {photos[0].photo_id}
