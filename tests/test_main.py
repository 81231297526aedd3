"""Tests for the omada-poller command line entry point."""

from unittest.mock import MagicMock, patch

import pytest

from omada_controller_api import __main__ as cli
from omada_controller_api.config import PollerConfig


@pytest.fixture
def config():
    return PollerConfig(server="omada.lan", username="admin", password="pw")


def test_once_runs_single_sweep(config):
    with patch.object(cli.PollerConfig, "from_env", return_value=config), \
            patch.object(cli, "OmadaController") as mock_controller_cls, \
            patch.object(cli, "OmadaPoller") as mock_poller_cls:
        mock_controller_cls.return_value.__enter__.return_value = MagicMock()

        assert cli.main(["--once", "--no-ssl", "--interval", "5"]) == 0

    args, kwargs = mock_controller_cls.call_args
    assert args == ("omada.lan", "admin", "pw")
    assert kwargs["ssl"] is False
    assert kwargs["verify_ssl"] is True
    mock_poller_cls.return_value.run_sweep.assert_called_once()
    mock_poller_cls.return_value.run.assert_not_called()
    assert mock_poller_cls.call_args.kwargs["interval"] == 5.0


def test_insecure_flag_disables_verification(config):
    with patch.object(cli.PollerConfig, "from_env", return_value=config):
        loaded = cli.load_config(cli.parse_arguments(["--insecure", "--server", "10.0.0.2"]))
    assert loaded.verify_ssl is False
    assert loaded.server == "10.0.0.2"


def test_configuration_error_exit_code(capsys):
    with patch.object(cli.PollerConfig, "from_env", side_effect=ValueError("OMADA_SERVER is not set")):
        assert cli.main([]) == 2
    assert "OMADA_SERVER" in capsys.readouterr().err


def test_invalid_override_is_rejected(config):
    with patch.object(cli.PollerConfig, "from_env", return_value=config):
        with pytest.raises(ValueError):
            cli.load_config(cli.parse_arguments(["--interval", "0"]))
