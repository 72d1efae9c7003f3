import textwrap
from pathlib import Path

import pytest

from rss_cache.config import STDIN_FEED, parse_app_config
from rss_cache.parser import DEFAULT_CHUNK_SIZE


def _write_config(tmp_path, body):
    path = tmp_path / "config.xml"
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return path


def test_parse_app_config_reads_all_sections(tmp_path):
    path = _write_config(
        tmp_path,
        """\
        <config>
          <feed>feeds/etsit.xml</feed>
          <refresh-interval-minutes>15</refresh-interval-minutes>
          <chunk-size>1024</chunk-size>
          <display><limit>5</limit></display>
          <logging>
            <level>DEBUG</level>
            <file>logs/cache.log</file>
          </logging>
          <database>
            <connection-string> sqlite:///cache.db </connection-string>
          </database>
        </config>
        """,
    )

    config = parse_app_config(str(path))

    assert config.feed == str((tmp_path / "feeds" / "etsit.xml").resolve())
    assert config.refresh_interval_minutes == 15.0
    assert config.chunk_size == 1024
    assert config.display.limit == 5
    assert config.logging.level == "DEBUG"
    assert Path(config.logging.file) == (tmp_path / "logs" / "cache.log").resolve()
    assert config.database.connection_string == "sqlite:///cache.db"


def test_parse_app_config_defaults(tmp_path):
    path = _write_config(tmp_path, "<config><feed>-</feed></config>")

    config = parse_app_config(str(path))

    assert config.feed == STDIN_FEED
    assert config.refresh_interval_minutes == 60.0
    assert config.chunk_size == DEFAULT_CHUNK_SIZE
    assert config.display.limit == 20
    assert config.logging.level == "INFO"
    assert config.logging.file is None
    assert config.database.connection_string == "sqlite:///rss.db"


def test_parse_app_config_missing_feed_raises(tmp_path):
    path = _write_config(tmp_path, "<config><feed>  </feed></config>")

    with pytest.raises(ValueError):
        parse_app_config(str(path))


@pytest.mark.parametrize(
    "extra",
    [
        "<refresh-interval-minutes>0</refresh-interval-minutes>",
        "<chunk-size>-1</chunk-size>",
        "<display><limit>0</limit></display>",
        "<display><limit>-5</limit></display>",
    ],
)
def test_parse_app_config_rejects_non_positive_values(tmp_path, extra):
    path = _write_config(tmp_path, f"<config><feed>feed.xml</feed>{extra}</config>")

    with pytest.raises(ValueError):
        parse_app_config(str(path))


def test_parse_app_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        parse_app_config(str(tmp_path / "missing.xml"))
