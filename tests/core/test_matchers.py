from labreaper.core.matchers import AnyOf, PrefixMatcher, TagMatcher, tags_to_dict


def test_tags_to_dict():
    tags = [{'Key': 'Project', 'Value': 'proj-x'}, {'Key': 'Name', 'Value': 'web'}]
    assert tags_to_dict(tags) == {'Project': 'proj-x', 'Name': 'web'}
    assert tags_to_dict(None) == {}


def test_tag_matcher():
    matcher = TagMatcher('Project', 'proj-x')
    assert matcher.matches('i-1', {'Project': 'proj-x'})
    assert not matcher.matches('i-1', {'Project': 'other'})
    assert not matcher.matches('proj-x', {})
    assert matcher.as_filter() == {'Name': 'tag:Project', 'Values': ['proj-x']}


def test_prefix_matcher_ignores_tags():
    matcher = PrefixMatcher('automation-lab-key-')
    assert matcher.matches('automation-lab-key-1700000000', {})
    assert not matcher.matches('my-key', {'Project': 'aws-resource-creation'})


def test_empty_prefix_matches_nothing():
    assert not PrefixMatcher('').matches('anything', {})


def test_any_of_is_tag_or_name():
    matcher = AnyOf(TagMatcher('Project', 'proj-x'), PrefixMatcher('automation-lab-bucket-'))
    assert matcher.matches('b1', {'Project': 'proj-x'})
    assert matcher.matches('automation-lab-bucket-123', {})
    assert not matcher.matches('b2', {'Project': 'other'})
    assert matcher.describe() == "tag Project=proj-x or name pattern 'automation-lab-bucket-*'"
