# tests/test_cli.py

import json

import pytest
import numpy as np
import cv2
import yaml
from PIL import Image

from photosweep.cli import main_cli

@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({
        'use_threading': True,
        'n_workers': 2,
        'database_path': str(tmp_path / "photos.db"),
        'thumbnail_dir': str(tmp_path / "thumbs"),
        'log_dir': str(tmp_path / "logs"),
    }))
    return str(path)

@pytest.fixture
def image_dir(tmp_path):
    folder = tmp_path / "images"
    folder.mkdir()
    img = np.random.randint(0, 255, (60, 90, 3), dtype=np.uint8)
    cv2.imwrite(str(folder / "a.png"), img)
    cv2.imwrite(str(folder / "b.png"), img)
    cv2.imwrite(str(folder / "dark.png"), np.zeros((60, 90, 3), dtype=np.uint8))
    return folder

def _run(capsys, *argv):
    code = main_cli(list(argv))
    return code, json.loads(capsys.readouterr().out)

def test_analyze(capsys, config_path, image_dir):
    code, output = _run(capsys, '-c', config_path, 'analyze',
                        str(image_dir / "a.png"), str(image_dir / "dark.png"))

    assert code == 0
    assert [p['filename'] for p in output['photos']] == ['a.png', 'dark.png']
    assert output['photos'][1]['is_screenshot'] is True
    assert output['errors'] == []

def test_analyze_reports_failures(capsys, config_path, tmp_path):
    bad = tmp_path / "notes.txt"
    bad.write_text("not an image")

    code, output = _run(capsys, '-c', config_path, 'analyze', str(bad))

    assert code == 1
    assert output['photos'] == []
    assert output['errors'][0]['reason'] == 'UnsupportedFormat'

def test_import_then_list(capsys, config_path, image_dir):
    code, output = _run(capsys, '-c', config_path, 'import', str(image_dir))
    assert code == 0
    assert output['uploaded'] == 3
    assert output['duplicates'] == 1

    code, output = _run(capsys, '-c', config_path, 'list', '--filter', 'duplicates')
    assert code == 0
    assert output['pagination']['total'] == 1

    code, output = _run(capsys, '-c', config_path, 'stats')
    assert output['total_photos'] == 3
    assert output['storage_used'] > 0

def test_unknown_photo_fails(capsys, config_path):
    assert main_cli(['-c', config_path, 'trash', 'nope']) == 1

def test_no_command_prints_help(capsys):
    assert main_cli([]) == 0
    assert 'usage' in capsys.readouterr().out

def test_import_with_failures_exits_nonzero(capsys, config_path, image_dir):
    """An .ico file renamed to .png is rejected and reported"""
    Image.new('RGB', (16, 16)).save(str(image_dir / "icon.png"), format='ICO')

    code, output = _run(capsys, '-c', config_path, 'import', str(image_dir))

    assert code == 1
    assert output['uploaded'] == 3
    assert [e['filename'] for e in output['errors']] == ['icon.png']
    assert output['errors'][0]['reason'] == 'UnsupportedFormat'
