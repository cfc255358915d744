"""Matching rules deciding which discovered resources belong to the lab.

Each resource kind uses one explicit rule:

- instances and security groups: ``TagMatcher`` (also applied server-side as a
  ``tag:<key>`` filter)
- key pairs: ``PrefixMatcher`` on the key name; key pairs are not tagged by
  the lab scripts
- buckets: ``AnyOf(TagMatcher, PrefixMatcher)``; either the project tag or
  the bucket naming convention is enough
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional


def tags_to_dict(tags: Optional[List[Dict[str, str]]]) -> Dict[str, str]:
    """Convert the AWS ``[{'Key': k, 'Value': v}]`` shape into a dict."""
    return {t['Key']: t.get('Value', '') for t in tags or [] if 'Key' in t}


class Matcher(ABC):
    @abstractmethod
    def matches(self, name: str, tags: Dict[str, str]) -> bool:
        pass

    @abstractmethod
    def describe(self) -> str:
        pass


class TagMatcher(Matcher):
    def __init__(self, key: str, value: str):
        self.key = key
        self.value = value

    def matches(self, name, tags):
        return tags.get(self.key) == self.value

    def describe(self):
        return f"tag {self.key}={self.value}"

    def as_filter(self) -> Dict[str, List[str]]:
        """EC2 ``Filters`` entry selecting the same resources."""
        return {'Name': f"tag:{self.key}", 'Values': [self.value]}


class PrefixMatcher(Matcher):
    def __init__(self, prefix: str):
        self.prefix = prefix

    def matches(self, name, tags):
        return bool(self.prefix) and name.startswith(self.prefix)

    def describe(self):
        return f"name pattern '{self.prefix}*'"


class AnyOf(Matcher):
    def __init__(self, *matchers: Matcher):
        self.matchers = matchers

    def matches(self, name, tags):
        return any(m.matches(name, tags) for m in self.matchers)

    def describe(self):
        return ' or '.join(m.describe() for m in self.matchers)
