import json
import pathlib
import shutil
import typing as t

import sprat.cli
from sprat.config import Config


EXAMPLES_DIR = pathlib.Path(__file__).parent.parent.parent / 'examples'

PARTIAL = '$accent: #336699;\n'
STYLES = {
    'scss/_vars.scss': PARTIAL,
    'scss/a.scss': "@import 'vars';\n.a { color: $accent; }\n",
    'scss/nested/b.scss': "@import '../vars';\n.b { border-color: $accent; }\n",
    'scss/c.scss': '.c { user-select: none; }\n',
}
VIEWS = {
    'views/layouts/base.njk': (
        '<!doctype html>\n<html><head><title>{{ title }}</title></head>\n'
        '<body>{% block content %}{% endblock %}</body></html>\n'
    ),
    'views/index.njk': (
        '{% extends "layouts/base.njk" %}\n'
        '{% block content %}<h1>{{ title }}</h1>{% endblock %}\n'
    ),
}
SVG = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<svg xmlns="http://www.w3.org/2000/svg" width="10" height="10">\n'
    '  <!-- decorative -->\n'
    '  <rect id="box" x="0" y="0" width="10" height="10" fill="#ff0000"/>\n'
    '</svg>\n'
)


def write_files(root: pathlib.Path, files: t.Mapping[str, str | bytes]):
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding='utf-8')


def write_images(images_dir: pathlib.Path):
    from PIL import Image

    (images_dir / 'icons').mkdir(parents=True, exist_ok=True)
    Image.new('RGB', (32, 32), (200, 30, 30)).save(images_dir / 'icons' / 'dot.png')
    frames = [Image.new('P', (16, 16), i) for i in (1, 2)]
    frames[0].save(images_dir / 'anim.gif', save_all=True, append_images=frames[1:])
    (images_dir / 'logo.svg').write_text(SVG, encoding='utf-8')


def write_site(root: pathlib.Path, data: t.Any = None, images: bool = True):
    """
    Lay out a small project under @root/src covering every category.
    """
    src = root / 'src'
    write_files(src, {
        **STYLES,
        **VIEWS,
        'js/app.js': 'var answer = 42;\n',
        'fonts/site.woff2': b'wOF2\x00\x01',
        'robots.txt': 'User-agent: *\n',
        'data.json': json.dumps({'title': 'Home'} if data is None else data),
    })
    if images:
        write_images(src / 'images')
    return src


def make_config(root: pathlib.Path, **options: t.Any):
    return Config.default(root, **options)


def mtimes(directory: pathlib.Path):
    return {
        p.relative_to(directory).as_posix(): p.stat().st_mtime_ns
        for p in directory.rglob('*') if p.is_file()
    }


def load_artifact(path: pathlib.Path):
    with path.open() as file:
        return json.load(file)


def copy_example(name: str, tmp_dir: pathlib.Path):
    """
    Copy an example project into @tmp_dir, so builds never write into the
    source tree.
    """
    root = tmp_dir / name
    shutil.copytree(EXAMPLES_DIR / name, root)
    return root


def example_cli(name: str, root: pathlib.Path, *arguments: str):
    """
    Run the CLI with an example's config file against a copy at @root.
    """
    config_path = (EXAMPLES_DIR / name).with_suffix('.py')
    sprat.cli.main(['-c', str(config_path), '-r', str(root), *arguments])
    return root


def run_example_cli(name: str, tmp_dir: pathlib.Path, *arguments: str):
    return example_cli(name, copy_example(name, tmp_dir), *arguments)
