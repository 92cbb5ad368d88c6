"""Tests for DeployRequest validation and DeploySummary reduction."""

import pytest
from tarship.application.dtos.deployment_dtos import (
    DeployRequest,
    DeploySummary,
    Outcome,
    to_unix_path,
)
from tarship.domain.entities.host_session import HostOutcome, SessionStatus
from tarship.domain.errors import DeployError, ErrorKind
from tarship.domain.value_objects.target_host import TargetHost


def _request(**overrides):
    options = dict(
        hosts=(TargetHost(host="10.0.0.1"),),
        local_dir="dist",
        local_archive="dist.tar.gz",
        remote_archive="/tmp/dist.tar.gz",
        remote_dir="/var/www/app",
    )
    options.update(overrides)
    return DeployRequest(**options)


def _outcome(index, status, error=None):
    return HostOutcome(
        TargetHost(host=f"10.0.0.{index + 1}"), index, status, attempts=1, error=error
    )


class TestDefaults:
    def test_defaults(self):
        request = _request()
        assert request.build_command == "npm run build"
        assert request.max_backup_count == 5
        assert request.retry_count == 3
        assert request.retry_delay == 0.3
        assert request.concurrent is True
        assert request.remote_cwd == "/"

    def test_hosts_become_tuple(self):
        assert isinstance(_request(hosts=[TargetHost(host="a.example")]).hosts, tuple)


class TestValidate:
    def test_valid(self):
        _request().validate()

    @pytest.mark.parametrize(
        "field", ["local_dir", "local_archive", "remote_archive", "remote_dir"]
    )
    def test_missing_required(self, field):
        with pytest.raises(DeployError) as exc_info:
            _request(**{field: ""}).validate()
        assert exc_info.value.kind == ErrorKind.CONFIGURATION
        assert field in exc_info.value.message

    def test_no_hosts(self):
        with pytest.raises(DeployError, match="At least one target host"):
            _request(hosts=()).validate()

    def test_retry_count(self):
        with pytest.raises(DeployError, match="retry_count"):
            _request(retry_count=0).validate()

    def test_negative_retry_delay(self):
        with pytest.raises(DeployError, match="retry_delay") as exc_info:
            _request(retry_delay=-1.0).validate()
        assert exc_info.value.kind == ErrorKind.CONFIGURATION

    def test_zero_retry_delay_allowed(self):
        _request(retry_delay=0).validate()

    def test_negative_backup_count(self):
        with pytest.raises(DeployError, match="max_backup_count"):
            _request(max_backup_count=-1).validate()

    @pytest.mark.parametrize("remote_dir", ["/tmp", "/tmp/", "/tmp/./", "\\tmp"])
    def test_remote_dir_equal_to_archive_dir(self, remote_dir):
        with pytest.raises(DeployError, match="remote_dir must not be"):
            _request(remote_dir=remote_dir).validate()

    def test_idempotent(self):
        request = _request(remote_dir="/tmp")
        messages = []
        for _ in range(3):
            with pytest.raises(DeployError) as exc_info:
                request.validate()
            messages.append((exc_info.value.kind, exc_info.value.message))
        assert len(set(messages)) == 1


class TestActivationCommand:
    def test_default_command(self):
        command = _request(remote_cwd="/home/app").resolved_activation_command
        assert command == (
            "cd /home/app && rm -rf /var/www/app && mkdir -p /var/www/app && "
            "tar -xzf /tmp/dist.tar.gz -C /var/www/app && rm -rf /tmp/dist.tar.gz && exit\n"
        )

    def test_paths_are_quoted(self):
        command = _request(remote_dir="/srv/my app").resolved_activation_command
        assert "'/srv/my app'" in command

    def test_override_gets_newline(self):
        assert _request(activation_command="./activate.sh").resolved_activation_command == (
            "./activate.sh\n"
        )

    def test_unix_path(self):
        assert to_unix_path("C:\\builds\\dist") == "C:/builds/dist"


class TestSummary:
    def test_all_succeeded(self):
        summary = DeploySummary.reduce(
            [_outcome(1, SessionStatus.SUCCEEDED), _outcome(0, SessionStatus.SUCCEEDED)], 1.0
        )
        assert summary.outcome == Outcome.SUCCESS
        assert [h.index for h in summary.hosts] == [0, 1]
        assert summary.ok

    def test_partial(self):
        summary = DeploySummary.reduce(
            [_outcome(0, SessionStatus.SUCCEEDED), _outcome(1, SessionStatus.FAILED)], 1.0
        )
        assert summary.outcome == Outcome.PARTIAL
        assert (summary.total, summary.succeeded, summary.failed) == (2, 1, 1)
        assert summary.ok

    def test_all_failed(self):
        summary = DeploySummary.reduce([_outcome(0, SessionStatus.FAILED)], 1.0)
        assert summary.outcome == Outcome.FAILED
        assert not summary.ok

    def test_cancelled(self):
        summary = DeploySummary.reduce([_outcome(0, SessionStatus.PENDING)], 0.5, "build")
        assert summary.outcome == Outcome.CANCELLED
        assert summary.cancelled_at == "build"

    def test_render(self):
        error = DeployError(ErrorKind.CONNECT, "refused", host="10.0.0.2")
        summary = DeploySummary.reduce(
            [_outcome(0, SessionStatus.SUCCEEDED), _outcome(1, SessionStatus.FAILED, error)],
            2.5,
        )
        text = summary.render()
        assert "Host" in text.splitlines()[0]
        assert "10.0.0.1" in text
        assert "DeployError(connect): [10.0.0.2] refused" in text
        assert text.splitlines()[-1] == (
            "Total: 2  Succeeded: 1  Failed: 1  Elapsed: 2.50s  Outcome: partial"
        )
