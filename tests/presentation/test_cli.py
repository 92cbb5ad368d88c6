"""Tests for CLI module."""

import json
import logging
import pytest
from unittest.mock import patch, AsyncMock, MagicMock

from tarship.application.dtos.deployment_dtos import DeploySummary, Outcome
from tarship.domain.entities.host_session import HostOutcome, SessionStatus
from tarship.domain.errors import DeployError, ErrorKind
from tarship.domain.ports.transport_port import CommandResult
from tarship.domain.value_objects.target_host import TargetHost
from tarship.presentation.cli.cli import async_main, main

CONTAINER = "tarship.presentation.cli.cli.create_container"


def _summary(outcome, statuses=(), **kwargs):
    hosts = tuple(
        HostOutcome(host=TargetHost(host=f"10.0.0.{i + 1}"), index=i, status=status, attempts=1)
        for i, status in enumerate(statuses)
    )
    return DeploySummary(outcome=outcome, hosts=hosts, **kwargs)


def _make_container(summary=None, side_effect=None):
    """Create a mock container whose pipeline returns `summary`."""
    container = MagicMock()
    container.pipeline.deploy = AsyncMock(return_value=summary, side_effect=side_effect)
    return container


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "tarship.json"
    path.write_text(json.dumps({
        "remote": {"archive": "/tmp/dist.tar.gz", "dir": "/var/www/app"},
        "fleet": {"targets": ["deploy@10.0.0.1", "deploy@10.0.0.2"]},
    }))
    return str(path)


class TestCLIHelp:
    @pytest.mark.asyncio
    async def test_no_command_prints_help(self, capsys):
        assert await async_main([]) == 0
        assert "fleet of SSH hosts" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_help_flag(self):
        with patch("sys.argv", ["tarship", "--help"]), \
             pytest.raises(SystemExit, match="0"):
            await async_main()

    @pytest.mark.asyncio
    async def test_deploy_help(self):
        with pytest.raises(SystemExit, match="0"):
            await async_main(["deploy", "--help"])

    @pytest.mark.asyncio
    async def test_exec_requires_target(self):
        with pytest.raises(SystemExit, match="2"):
            await async_main(["exec", "ls"])


class TestDeployCommand:
    @pytest.mark.asyncio
    async def test_success(self, config_file, capsys):
        container = _make_container(
            _summary(Outcome.SUCCESS, [SessionStatus.SUCCEEDED, SessionStatus.SUCCEEDED])
        )
        with patch(CONTAINER, return_value=container) as mock_create:
            code = await async_main(["deploy", "-c", config_file])

        assert code == 0
        mock_create.assert_called_once_with(connect_timeout=30)
        request = container.pipeline.deploy.call_args.args[0]
        assert [h.host for h in request.hosts] == ["10.0.0.1", "10.0.0.2"]
        assert request.concurrent is True
        out = capsys.readouterr().out
        assert "Deployment Successful to all 2 host(s)" in out
        assert "Outcome: success" in out

    @pytest.mark.asyncio
    async def test_flags_override_config(self, config_file):
        container = _make_container(_summary(Outcome.SUCCESS, [SessionStatus.SUCCEEDED]))
        with patch(CONTAINER, return_value=container):
            await async_main([
                "deploy", "-c", config_file,
                "--skip-build", "--interactive", "--sequential",
                "--targets", "ops@10.0.0.7:2222",
            ])

        request = container.pipeline.deploy.call_args.args[0]
        assert request.skip_build is True
        assert request.interactive is True
        assert request.concurrent is False
        assert request.hosts == (TargetHost(host="10.0.0.7", port=2222, user="ops"),)

    @pytest.mark.asyncio
    async def test_partial_success_exits_zero(self, config_file, capsys):
        container = _make_container(
            _summary(Outcome.PARTIAL, [SessionStatus.SUCCEEDED, SessionStatus.FAILED])
        )
        with patch(CONTAINER, return_value=container):
            assert await async_main(["deploy", "-c", config_file]) == 0
        assert "succeeded on 1/2 host(s)" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_all_failed(self, config_file, capsys):
        container = _make_container(
            _summary(Outcome.FAILED, [SessionStatus.FAILED, SessionStatus.FAILED])
        )
        with patch(CONTAINER, return_value=container):
            assert await async_main(["deploy", "-c", config_file]) == 1
        assert "Failed on every host" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_cancelled(self, config_file, capsys):
        container = _make_container(_summary(Outcome.CANCELLED, cancelled_at="upload"))
        with patch(CONTAINER, return_value=container):
            assert await async_main(["deploy", "-c", config_file]) == 0
        assert "cancelled before the upload stage" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_aborted(self, config_file, capsys):
        error = DeployError(ErrorKind.CONFIGURATION, "remote_dir missing")
        container = _make_container(_summary(Outcome.ABORTED, error=error))
        with patch(CONTAINER, return_value=container):
            assert await async_main(["deploy", "-c", config_file]) == 1
        assert "aborted" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_unhandled_error(self, config_file, capsys):
        error = DeployError(ErrorKind.BUILD, "Build command 'npm run build' exited with code 1")
        container = _make_container(side_effect=error)
        with patch(CONTAINER, return_value=container):
            assert await async_main(["deploy", "-c", config_file]) == 1
        assert "Deployment Failed" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_unexpected_error_verbose(self, config_file, capsys):
        container = _make_container(side_effect=RuntimeError("kaboom"))
        with patch(CONTAINER, return_value=container):
            assert await async_main(["-v", "deploy", "-c", config_file]) == 1
        captured = capsys.readouterr()
        assert "Unexpected error during deployment: kaboom" in captured.out
        assert "Traceback" in captured.err

    @pytest.mark.asyncio
    async def test_invalid_target(self, config_file, capsys):
        with patch(CONTAINER) as mock_create:
            assert await async_main(["deploy", "-c", config_file, "-t", "deploy@bad_host!"]) == 1
        mock_create.assert_not_called()
        assert "Invalid target" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_configured_log_level(self, tmp_path):
        path = tmp_path / "tarship.json"
        path.write_text(json.dumps({
            "log_level": "info",
            "fleet": {"targets": ["deploy@10.0.0.1"]},
        }))
        container = _make_container(_summary(Outcome.SUCCESS, [SessionStatus.SUCCEEDED]))

        with patch(CONTAINER, return_value=container):
            await async_main(["deploy", "-c", str(path)])
        assert logging.getLogger("tarship").level == logging.INFO

        with patch(CONTAINER, return_value=container):
            await async_main(["--debug", "deploy", "-c", str(path)])
        assert logging.getLogger("tarship").level == logging.DEBUG

    @pytest.mark.asyncio
    async def test_unknown_log_level_falls_back(self, tmp_path):
        path = tmp_path / "tarship.json"
        path.write_text(json.dumps({
            "log_level": "chatty",
            "fleet": {"targets": ["deploy@10.0.0.1"]},
        }))
        container = _make_container(_summary(Outcome.SUCCESS, [SessionStatus.SUCCEEDED]))

        with patch(CONTAINER, return_value=container):
            await async_main(["deploy", "-c", str(path)])
        assert logging.getLogger("tarship").level == logging.WARNING

class TestExecCommand:
    @pytest.mark.asyncio
    async def test_runs_in_cwd(self, fake_transport, capsys):
        fake_transport.exec_results["10.0.0.1"] = lambda cmd: CommandResult("app\n", "", 0)
        container = MagicMock(transport=fake_transport)
        with patch(CONTAINER, return_value=container):
            code = await async_main(["exec", "-t", "deploy@10.0.0.1", "--cwd", "/srv", "ls"])

        assert code == 0
        session = fake_transport.sessions_for("10.0.0.1")[0]
        assert session.commands == ["cd /srv && ls"]
        assert session.closed == 1
        assert capsys.readouterr().out == "app\n"

    @pytest.mark.asyncio
    async def test_exit_code_passed_through(self, fake_transport, capsys):
        fake_transport.exec_results["10.0.0.1"] = lambda cmd: CommandResult("", "nope\n", 3)
        container = MagicMock(transport=fake_transport)
        with patch(CONTAINER, return_value=container):
            code = await async_main(["exec", "-t", "10.0.0.1", "false"])

        assert code == 3
        assert "nope" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_unreachable(self, fake_transport, capsys):
        fake_transport.unreachable.add("10.0.0.1")
        container = MagicMock(transport=fake_transport)
        with patch(CONTAINER, return_value=container):
            assert await async_main(["exec", "-t", "10.0.0.1", "uptime"]) == 1
        assert "Remote command failed" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_empty_command(self, capsys):
        with patch(CONTAINER) as mock_create:
            assert await async_main(["exec", "-t", "10.0.0.1"]) == 1
        mock_create.assert_not_called()


class TestMain:
    def test_exit_status(self):
        with patch("sys.argv", ["tarship"]), pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 0
