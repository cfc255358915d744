import pytest
from unittest.mock import MagicMock
from botocore.exceptions import ClientError, EndpointConnectionError
from labreaper.resources.security_groups import SecurityGroupReaper
from labreaper.core.config import Config
from labreaper.core.outcomes import Status


@pytest.fixture
def mock_session():
    return MagicMock()


@pytest.fixture
def ec2_client(mock_session):
    client = MagicMock()
    mock_session.client.return_value = client
    client.get_paginator.return_value.paginate.return_value = [{'SecurityGroups': [
        {'GroupId': 'sg-1', 'GroupName': 'automation-lab-sg', 'Tags': [{'Key': 'Project', 'Value': 'proj-x'}]},
        {'GroupId': 'sg-2', 'GroupName': 'automation-lab-sg-2', 'Tags': [{'Key': 'Project', 'Value': 'proj-x'}]},
    ]}]
    return client


def test_discover_uses_tag_filter(mock_session, ec2_client):
    config = Config(project_tag='proj-x')
    refs = SecurityGroupReaper(mock_session, config).discover()

    ec2_client.get_paginator.return_value.paginate.assert_called_with(
        Filters=[{'Name': 'tag:Project', 'Values': ['proj-x']}])
    assert [(r.id, r.display_name) for r in refs] == [('sg-1', 'automation-lab-sg'), ('sg-2', 'automation-lab-sg-2')]


def test_in_use_group_does_not_block_next_group(mock_session, ec2_client):
    ec2_client.delete_security_group.side_effect = [
        ClientError({'Error': {'Code': 'DependencyViolation'}}, 'DeleteSecurityGroup'),
        {},
    ]
    config = Config(project_tag='proj-x', dry_run=False)

    reaper = SecurityGroupReaper(mock_session, config)
    outcomes = reaper.reap(reaper.discover())

    assert ec2_client.delete_security_group.call_count == 2
    ec2_client.delete_security_group.assert_called_with(GroupId='sg-2')
    assert [(o.ref.id, o.status, o.reason) for o in outcomes] == [
        ('sg-1', Status.FAILED, 'in-use'),
        ('sg-2', Status.DELETED, ''),
    ]


def test_other_errors_report_their_code(mock_session, ec2_client):
    ec2_client.delete_security_group.side_effect = ClientError(
        {'Error': {'Code': 'InvalidGroup.NotFound'}}, 'DeleteSecurityGroup')
    config = Config(project_tag='proj-x', dry_run=False)

    reaper = SecurityGroupReaper(mock_session, config)
    outcomes = reaper.reap(reaper.discover())

    assert {o.reason for o in outcomes} == {'InvalidGroup.NotFound'}


def test_connection_error_fails_only_that_group(mock_session, ec2_client):
    ec2_client.delete_security_group.side_effect = [
        EndpointConnectionError(endpoint_url='https://ec2.amazonaws.com'),
        {},
    ]
    config = Config(project_tag='proj-x', dry_run=False)

    reaper = SecurityGroupReaper(mock_session, config)
    outcomes = reaper.reap(reaper.discover())

    assert [(o.ref.id, o.status) for o in outcomes] == [('sg-1', Status.FAILED), ('sg-2', Status.DELETED)]
    assert 'ec2.amazonaws.com' in outcomes[0].reason


def test_dry_run(mock_session, ec2_client):
    config = Config(project_tag='proj-x', dry_run=True)

    reaper = SecurityGroupReaper(mock_session, config)
    outcomes = reaper.reap(reaper.discover())

    ec2_client.delete_security_group.assert_not_called()
    assert [o.status for o in outcomes] == [Status.PLANNED, Status.PLANNED]
