"""Alembic revision graph checks. No database is touched."""

from pathlib import Path

from alembic.config import Config
from alembic.script import ScriptDirectory

ROOT = Path(__file__).resolve().parents[1]


def _scripts() -> ScriptDirectory:
    config = Config(str(ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(ROOT / "alembic"))
    return ScriptDirectory.from_config(config)


def test_single_head() -> None:
    assert _scripts().get_heads() == ["001_initial_schema"]


def test_initial_revision_is_base() -> None:
    revision = _scripts().get_revision("001_initial_schema")
    assert revision.down_revision is None
