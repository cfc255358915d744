import pytest
from unittest.mock import MagicMock, patch
from labreaper.resources.local import LocalArtifactReaper
from labreaper.core.config import Config
from labreaper.core.outcomes import Status


@pytest.fixture
def outputs(tmp_path):
    for sub in ('info', 'samples', 'keys', 'logs'):
        (tmp_path / sub).mkdir()
    (tmp_path / 'info' / 'ec2_info.txt').write_text('i-1')
    (tmp_path / 'samples' / 'sample.txt').write_text('hello')
    (tmp_path / 'keys' / 'automation-lab-key-1.pem').write_text('secret')
    (tmp_path / 'keys' / 'personal.pem').write_text('keep')
    (tmp_path / 'logs' / 'cleanup_20250101_000000.log').write_text('keep')
    return tmp_path


def test_discover_known_artifacts_only(outputs):
    config = Config(output_dir=str(outputs))
    refs = LocalArtifactReaper(MagicMock(), config).discover()
    assert sorted(r.display_name for r in refs) == ['automation-lab-key-1.pem', 'ec2_info.txt', 'sample.txt']


def test_reap_removes_files(outputs):
    config = Config(output_dir=str(outputs), dry_run=False)
    reaper = LocalArtifactReaper(MagicMock(), config)
    outcomes = reaper.reap(reaper.discover())

    assert all(o.status is Status.DELETED for o in outcomes)
    assert not (outputs / 'info' / 'ec2_info.txt').exists()
    assert (outputs / 'keys' / 'personal.pem').exists()
    assert (outputs / 'logs' / 'cleanup_20250101_000000.log').exists()


def test_dry_run_keeps_files(outputs):
    config = Config(output_dir=str(outputs), dry_run=True)
    reaper = LocalArtifactReaper(MagicMock(), config)
    outcomes = reaper.reap(reaper.discover())

    assert [o.status for o in outcomes] == [Status.PLANNED] * 3
    assert (outputs / 'samples' / 'sample.txt').exists()


def test_missing_output_dir_finds_nothing(tmp_path):
    config = Config(output_dir=str(tmp_path / 'missing'))
    assert LocalArtifactReaper(MagicMock(), config).discover() == []


def test_unlink_error_only_fails_that_file(outputs):
    config = Config(output_dir=str(outputs), dry_run=False)
    reaper = LocalArtifactReaper(MagicMock(), config)
    refs = reaper.discover()

    with patch('labreaper.resources.local.Path.unlink',
               side_effect=[PermissionError(13, 'Permission denied'), None, None]):
        outcomes = reaper.reap(refs)

    assert [o.status for o in outcomes] == [Status.FAILED, Status.DELETED, Status.DELETED]
    assert outcomes[0].reason == 'Permission denied'
