import pytest
from unittest.mock import MagicMock
from botocore.exceptions import ClientError, EndpointConnectionError
from labreaper.resources.keypairs import KeyPairReaper
from labreaper.core.config import Config
from labreaper.core.outcomes import Status


@pytest.fixture
def mock_session():
    return MagicMock()


@pytest.fixture
def ec2_client(mock_session):
    client = MagicMock()
    mock_session.client.return_value = client
    client.describe_key_pairs.return_value = {'KeyPairs': [
        {'KeyName': 'automation-lab-key-1700000000', 'KeyPairId': 'key-1'},
        {'KeyName': 'personal-key', 'KeyPairId': 'key-2'},
    ]}
    return client


@pytest.fixture
def config(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return Config(output_dir=str(tmp_path / 'outputs'), dry_run=False)


def test_discover_matches_name_prefix_only(mock_session, config, ec2_client):
    refs = KeyPairReaper(mock_session, config).discover()
    assert [r.id for r in refs] == ['automation-lab-key-1700000000']


def test_delete_removes_local_key_files(mock_session, config, ec2_client, tmp_path):
    config.key_dir.mkdir(parents=True)
    in_key_dir = config.key_dir / 'automation-lab-key-1700000000.pem'
    in_cwd = tmp_path / 'automation-lab-key-1700000000.pem'
    in_key_dir.write_text('secret')
    in_cwd.write_text('secret')

    reaper = KeyPairReaper(mock_session, config)
    outcomes = reaper.reap(reaper.discover())

    ec2_client.delete_key_pair.assert_called_once_with(KeyName='automation-lab-key-1700000000')
    assert [o.status for o in outcomes] == [Status.DELETED]
    assert not in_key_dir.exists()
    assert not in_cwd.exists()


def test_missing_local_key_is_not_an_error(mock_session, config, ec2_client):
    reaper = KeyPairReaper(mock_session, config)
    outcomes = reaper.reap(reaper.discover())
    assert [o.status for o in outcomes] == [Status.DELETED]


def test_delete_failure_is_reported(mock_session, config, ec2_client):
    ec2_client.delete_key_pair.side_effect = ClientError(
        {'Error': {'Code': 'UnauthorizedOperation'}}, 'DeleteKeyPair')

    reaper = KeyPairReaper(mock_session, config)
    outcomes = reaper.reap(reaper.discover())

    assert [(o.status, o.reason) for o in outcomes] == [(Status.FAILED, 'UnauthorizedOperation')]


def test_connection_error_is_reported_per_key(mock_session, config, ec2_client):
    ec2_client.delete_key_pair.side_effect = EndpointConnectionError(endpoint_url='https://ec2.amazonaws.com')

    reaper = KeyPairReaper(mock_session, config)
    outcomes = reaper.reap(reaper.discover())

    assert [o.status for o in outcomes] == [Status.FAILED]
    assert 'ec2.amazonaws.com' in outcomes[0].reason


def test_dry_run_keeps_key_and_local_file(mock_session, config, ec2_client):
    config.dry_run = True
    config.key_dir.mkdir(parents=True)
    pem = config.key_dir / 'automation-lab-key-1700000000.pem'
    pem.write_text('secret')

    reaper = KeyPairReaper(mock_session, config)
    outcomes = reaper.reap(reaper.discover())

    ec2_client.delete_key_pair.assert_not_called()
    assert pem.exists()
    assert [o.status for o in outcomes] == [Status.PLANNED]
