# ABOUTME: Tests for the init_db CLI command
# ABOUTME: Covers first-run bootstrap, re-runs, fatal failures and argument handling

import pytest
from unittest.mock import patch
from sqlalchemy import create_engine, inspect, text

from app.cli.init_db import bootstrap, main
from app.config import Settings
from app.services.bootstrap import TABLE_ORDER


def count_rows(database_path, table):
    engine = create_engine(f"sqlite:///{database_path}")
    try:
        with engine.connect() as conn:
            return conn.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar()
    finally:
        engine.dispose()


def test_bootstrap_creates_database_tables_and_seed(cli_settings, temp_database, capsys):
    with patch("app.cli.init_db.get_settings", return_value=cli_settings):
        bootstrap()

    captured = capsys.readouterr()
    assert "Database created/verified" in captured.out
    assert "Created tables: key_groups, admins, vpn_keys, vpn_accounts, account_keys" in captured.out
    assert "Database initialization completed!" in captured.out

    engine = create_engine(f"sqlite:///{temp_database}")
    assert set(TABLE_ORDER) <= set(inspect(engine).get_table_names())
    engine.dispose()
    assert count_rows(temp_database, "key_groups") == 4
    assert count_rows(temp_database, "admins") == 1


def test_bootstrap_rerun_is_idempotent(cli_settings, temp_database, capsys):
    with patch("app.cli.init_db.get_settings", return_value=cli_settings):
        bootstrap()
        capsys.readouterr()
        bootstrap()

    captured = capsys.readouterr()
    assert "All tables already exist" in captured.out
    assert "0 created, 5 already present" in captured.out
    assert count_rows(temp_database, "key_groups") == 4
    assert count_rows(temp_database, "admins") == 1


def test_bootstrap_unreachable_database_exits_nonzero(tmp_path, capsys):
    settings = Settings(database_url=f"sqlite:///{tmp_path}/missing/dir/keyvpn.db")

    with patch("app.cli.init_db.get_settings", return_value=settings):
        with pytest.raises(SystemExit) as exc_info:
            bootstrap(create_database=False)

    assert exc_info.value.code == 1
    assert "Error" in capsys.readouterr().out


def test_main_skip_create_database_flag(cli_settings):
    with patch("app.cli.init_db.get_settings", return_value=cli_settings), \
         patch("app.cli.init_db.bootstrap") as mock_bootstrap, \
         patch("sys.argv", ["init_db", "--skip-create-database"]):
        main()

    mock_bootstrap.assert_called_once_with(create_database=False)


def test_main_defaults_to_creating_database(cli_settings):
    with patch("app.cli.init_db.get_settings", return_value=cli_settings), \
         patch("app.cli.init_db.bootstrap") as mock_bootstrap, \
         patch("sys.argv", ["init_db"]):
        main()

    mock_bootstrap.assert_called_once_with(create_database=True)
