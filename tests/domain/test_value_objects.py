"""Tests for Stage and backup value objects."""

from datetime import date
import pytest
from tarship.domain.errors import ErrorKind, ErrorScope
from tarship.domain.value_objects.backup_record import (
    BackupRecord,
    BackupResult,
    BackupStatus,
    backup_name_for,
    is_backup_name,
)
from tarship.domain.value_objects.stage import Stage


class TestStage:
    def test_activate_is_named_deploy(self):
        assert Stage.ACTIVATE.value == "deploy"

    def test_error_kinds(self):
        assert Stage.VALIDATE.error_kind == ErrorKind.CONFIGURATION
        assert Stage.UPLOAD.error_kind == ErrorKind.UPLOAD
        assert Stage.ACTIVATE.error_kind == ErrorKind.ACTIVATE
        assert Stage.CLEANUP.error_kind == ErrorKind.CLEANUP

    def test_host_stages(self):
        assert {s for s in Stage if s.scope == ErrorScope.HOST} == {
            Stage.CONNECT, Stage.UPLOAD, Stage.ACTIVATE,
        }

    @pytest.mark.parametrize(
        "stage, kind, expected",
        [
            (Stage.BUILD, ErrorKind.UNKNOWN, ErrorScope.PIPELINE),
            (Stage.BUILD, ErrorKind.BACKUP, ErrorScope.SOFT),
            (Stage.ACTIVATE, ErrorKind.UNKNOWN, ErrorScope.HOST),
            (Stage.UPLOAD, ErrorKind.BUILD, ErrorScope.HOST),
            (Stage.ACTIVATE, ErrorKind.BACKUP, ErrorScope.SOFT),
            (Stage.CLEANUP, ErrorKind.CONNECT, ErrorScope.SOFT),
            (Stage.CLEANUP, ErrorKind.UNKNOWN, ErrorScope.SOFT),
        ],
    )
    def test_stage_caps_error_scope(self, stage, kind, expected):
        assert stage.scope_of(kind) == expected


class TestBackupNames:
    def test_name_for_day(self):
        assert backup_name_for(date(2024, 3, 7)) == "2024-03-07.tar.gz"

    @pytest.mark.parametrize("name", ["2024-03-07.tar.gz", "1999-12-31.tar.gz"])
    def test_matches(self, name):
        assert is_backup_name(name)

    @pytest.mark.parametrize(
        "name", ["notes.txt", "2024-3-7.tar.gz", "2024-03-07.tar", "x2024-03-07.tar.gz"]
    )
    def test_rejects(self, name):
        assert not is_backup_name(name)


class TestBackupRecord:
    def test_path_and_day(self):
        record = BackupRecord("2024-01-02.tar.gz", 10.0, "/srv/backups")
        assert record.path == "/srv/backups/2024-01-02.tar.gz"
        assert record.day == date(2024, 1, 2)

    def test_day_of_foreign_file(self):
        assert BackupRecord("readme", 1.0).day is None


class TestBackupResult:
    def test_created(self):
        assert BackupResult(BackupStatus.COPIED, "/b").created
        assert BackupResult(BackupStatus.UPLOADED, "/b").created
        assert not BackupResult(BackupStatus.SKIPPED, "/b").created
        assert not BackupResult(BackupStatus.FAILED, "/b", error="x").created
