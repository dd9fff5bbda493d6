from unittest.mock import MagicMock, patch

import pytest

import metabase_mcp.mcp_server as server_pkg
from metabase_mcp.mcp_server import main as main_mod


@pytest.fixture
def quiet_setup(monkeypatch):
    monkeypatch.setenv("METABASE_URL", "https://metabase.test")
    monkeypatch.setenv("METABASE_API_KEY", "k")
    with patch.object(main_mod, "setup_logging") as setup_logging, patch.object(
        main_mod, "setup_global_exception_logging"
    ) as setup_exc:
        yield setup_logging, setup_exc


def test_main_runs_stdio_server(quiet_setup):
    setup_logging, setup_exc = quiet_setup
    run_server = MagicMock(return_value="coro")
    with patch.object(server_pkg, "run_server", run_server), patch.object(
        main_mod.asyncio, "run"
    ) as asyncio_run:
        main_mod.main()

    setup_logging.assert_called_once()
    setup_exc.assert_called_once()
    run_server.assert_called_once_with()
    asyncio_run.assert_called_once_with("coro")


def test_main_sigint_is_orderly_shutdown(quiet_setup, caplog):
    caplog.set_level("INFO")
    with patch.object(server_pkg, "run_server", MagicMock()), patch.object(
        main_mod.asyncio, "run", side_effect=KeyboardInterrupt
    ):
        main_mod.main()
    assert any("shutting down" in r.message for r in caplog.records)


def test_main_startup_failure_exits_1(quiet_setup, caplog):
    caplog.set_level("INFO")
    with patch.object(server_pkg, "run_server", MagicMock()), patch.object(
        main_mod.asyncio, "run", side_effect=RuntimeError("METABASE_URL is required")
    ):
        with pytest.raises(SystemExit) as exc_info:
            main_mod.main()
    assert exc_info.value.code == 1
    fatal = [r for r in caplog.records if r.levelname == "CRITICAL"]
    assert len(fatal) == 1


def test_main_missing_configuration_exits_before_serving(quiet_setup, monkeypatch, caplog):
    for name in ("METABASE_URL", "METABASE_API_KEY", "METABASE_USER_EMAIL", "METABASE_PASSWORD"):
        monkeypatch.delenv(name, raising=False)
    caplog.set_level("INFO")
    run_server = MagicMock()
    with patch.object(server_pkg, "run_server", run_server), patch.object(
        main_mod.asyncio, "run"
    ) as asyncio_run:
        with pytest.raises(SystemExit) as exc_info:
            main_mod.main()

    assert exc_info.value.code == 1
    run_server.assert_not_called()
    asyncio_run.assert_not_called()
    (fatal,) = [r for r in caplog.records if r.levelname == "CRITICAL"]
    assert "METABASE_URL" in fatal.getMessage()
    assert "missing:" in fatal.getMessage()
