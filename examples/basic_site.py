from pathlib import Path

from sprat import Config


# Optional; `sprat` with no config file uses the same layout in the current
# directory. CLI arguments override these.
CONFIG = Config.default(
    Path(__file__).parent / 'basic_site',
    browsers_list=('defaults', 'safari >= 14'),
    port=5500,
)
