import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from labreaper.core.config import Config
from labreaper.core.outcomes import Outcome, ResourceKind, ResourceRef
from labreaper.core.report import Reporter
from labreaper.core.retry import error_code


class ResourceReaper(ABC):
    """Discovers and deletes the lab resources of a single kind.

    ``discover`` only reads from AWS and is identical in live and dry runs.
    ``reap`` turns every discovered ref into exactly one Outcome; with
    ``config.dry_run`` set it never issues a mutating call.
    """
    kind: ResourceKind

    def __init__(self, session: boto3.Session, config: Config, reporter: Optional[Reporter] = None):
        self.session = session
        self.config = config
        self.reporter = reporter or Reporter()
        # every outcome recorded since the engine last cleared it
        self.recorded: List[Outcome] = []

    def client(self, service: str):
        return self.session.client(service, region_name=self.config.region)

    def ref(self, resource_id: str, display_name: str = '') -> ResourceRef:
        return ResourceRef(self.kind, resource_id, display_name)

    def _record(self, outcomes: List[Outcome], outcome: Outcome) -> Outcome:
        outcomes.append(outcome)
        self.recorded.append(outcome)
        self.reporter.outcome(outcome)
        return outcome

    def describe_scope(self) -> str:
        """Human-readable matching rule, e.g. ``tag Project=lab``."""
        return self.matcher.describe()

    @staticmethod
    def _failure_reason(error) -> str:
        if isinstance(error, ClientError):
            return error_code(error) or str(error)
        return str(error)

    def safe_discover(self) -> List[ResourceRef]:
        """``discover`` with listing errors logged instead of raised."""
        try:
            return self.discover()
        except (ClientError, BotoCoreError) as e:
            logging.error(f"[{self.config.region}] Error listing {self.kind.value}: {e}")
            self.reporter.error(f"Could not list {self.kind.value}: {self._failure_reason(e)}")
            return []

    @abstractmethod
    def discover(self) -> List[ResourceRef]:
        pass

    @abstractmethod
    def reap(self, refs: List[ResourceRef]) -> List[Outcome]:
        pass
