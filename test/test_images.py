from pathlib import Path

import pytest

from sprat.images import ImageCache, SvgOptimizeStep
from sprat.tasks import CleanTask, ImagesTask
from sprat.test_harness import make_config, mtimes, write_site


@pytest.fixture
def site(tmp_path: Path):
    write_site(tmp_path)
    return make_config(tmp_path)


def test_image_cache(tmp_path: Path):
    source = tmp_path / 'a.png'
    source.write_bytes(b'png')
    cache = ImageCache(tmp_path / 'cache')

    key = cache.key(source, 'sig')
    assert key != cache.key(source, 'other')
    assert cache.get(key, '.PNG') is None

    stored = cache.put(key, b'optimized', '.PNG')
    assert stored == tmp_path / 'cache' / key[:2] / f'{key}.png'
    assert cache.get(key, '.PNG') == stored
    assert stored.read_bytes() == b'optimized'

    source.write_bytes(b'changed')
    assert cache.key(source, 'sig') != key


def test_images_optimized(site):
    ImagesTask(site).run()
    out = site.output_for('images')
    assert sorted(mtimes(out)) == ['anim.gif', 'icons/dot.png', 'logo.svg']
    for name in ('anim.gif', 'icons/dot.png', 'logo.svg'):
        assert (out / name).stat().st_size <= (site.input_dir / 'images' / name).stat().st_size


def test_svg_ids_kept(site):
    ImagesTask(site).run()
    svg = (site.output_for('images') / 'logo.svg').read_text()
    assert 'id="box"' in svg
    assert 'decorative' not in svg


def test_images_rerun_keeps_mtimes(site):
    ImagesTask(site).run()
    before = mtimes(site.output_for('images'))
    ImagesTask(site).run()
    assert mtimes(site.output_for('images')) == before


def test_images_cache_survives_clean(site, monkeypatch: pytest.MonkeyPatch):
    ImagesTask(site).run()
    first = (site.output_for('images') / 'logo.svg').read_bytes()
    CleanTask(site).run()
    assert not site.output_dir.exists()

    def fail(self, path: Path):
        raise AssertionError(f'{path} was optimized again')

    monkeypatch.setattr(SvgOptimizeStep, 'optimize', fail)
    ImagesTask(site).run()
    assert (site.output_for('images') / 'logo.svg').read_bytes() == first


def test_images_changed_source(site):
    ImagesTask(site).run()
    source = site.input_dir / 'images' / 'logo.svg'
    source.write_text(source.read_text().replace('#ff0000', '#00ff00'))
    ImagesTask(site).run()
    svg = (site.output_for('images') / 'logo.svg').read_text().lower()
    assert '#0f0' in svg or '#00ff00' in svg
    assert '#f00' not in svg


def test_images_other_files_copied(site):
    (site.input_dir / 'images' / 'photo.jpg').write_bytes(b'\xff\xd8jpeg')
    ImagesTask(site).run()
    assert (site.output_for('images') / 'photo.jpg').read_bytes() == b'\xff\xd8jpeg'


def test_image_cache_prune(tmp_path: Path):
    source = tmp_path / 'a.png'
    source.write_bytes(b'png')
    cache = ImageCache(tmp_path / 'cache')
    kept = cache.key(source, 'sig')
    dropped = cache.key(source, 'old-sig')
    cache.put(kept, b'new', '.png')
    cache.put(dropped, b'old', '.png')
    (cache.path_for(kept).parent / 'tmp1234.tmp').write_bytes(b'partial')

    cache.used.add(kept)
    assert cache.prune() == 2
    assert cache.get(kept, '.png') is not None
    assert cache.get(dropped, '.png') is None
    assert ImageCache(tmp_path / 'missing').prune() == 0


def test_images_prune_replaced_entries(site):
    ImagesTask(site).run()
    cache_dir = site.cache_dir / 'images'
    before = {p.name for p in cache_dir.rglob('*') if p.is_file()}
    assert len(before) == 3

    source = site.input_dir / 'images' / 'logo.svg'
    source.write_text(source.read_text().replace('#ff0000', '#00ff00'))
    ImagesTask(site).run()
    after = {p.name for p in cache_dir.rglob('*') if p.is_file()}
    assert len(after) == 3
    assert len(before & after) == 2
