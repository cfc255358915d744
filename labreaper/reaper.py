import logging
from typing import List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from labreaper.core.config import Config
from labreaper.core.errors import PreflightError
from labreaper.core.logging import timed
from labreaper.core.outcomes import DeletionPlan, Outcome, RunOutcome
from labreaper.core.report import Reporter
from labreaper.resources.base import ResourceReaper
from labreaper.resources.ec2 import InstanceReaper
from labreaper.resources.keypairs import KeyPairReaper
from labreaper.resources.local import LocalArtifactReaper
from labreaper.resources.s3 import BucketReaper
from labreaper.resources.security_groups import SecurityGroupReaper

# Instances go first: security groups cannot be deleted while attached.
REAPER_ORDER = (
    InstanceReaper,
    KeyPairReaper,
    SecurityGroupReaper,
    BucketReaper,
    LocalArtifactReaper,
)


class LabReaper:
    """Tears down everything a lab run created for one project tag and region.

    Kinds are processed one after another in ``REAPER_ORDER``. Nothing a
    single resource does, including a failed delete or a wait timeout, stops
    the rest of the run; every ref ends up as one Outcome in the result.
    """

    def __init__(self, config: Config, session: Optional[boto3.Session] = None,
                 reporter: Optional[Reporter] = None):
        self.config = config
        self.session = session or boto3.session.Session(region_name=config.region)
        self.reporter = reporter or Reporter()
        self.account_id = None
        self.reapers: List[ResourceReaper] = [
            cls(self.session, self.config, self.reporter) for cls in REAPER_ORDER
        ]

    def preflight(self) -> str:
        """Check credentials and region before anything is touched.

        Returns:
            The AWS account ID the credentials belong to

        Raises:
            PreflightError: If the region is unknown or credentials are
                missing or rejected
        """
        known = self.session.get_available_regions('ec2')
        if known and self.config.region not in known:
            raise PreflightError(f"Invalid or unsupported region: {self.config.region}",
                                 "Pass a valid region with --region or set AWS_DEFAULT_REGION")
        try:
            sts = self.session.client('sts', region_name=self.config.region)
            self.account_id = sts.get_caller_identity()['Account']
        except NoCredentialsError as e:
            raise PreflightError("AWS credentials are not configured.", "Please run: aws configure") from e
        except (ClientError, BotoCoreError) as e:
            raise PreflightError(f"AWS credentials are not configured properly: {e}",
                                 "Please run: aws configure") from e
        logging.info(f"Credentials verified for account {self.account_id}")
        return self.account_id

    def plan(self) -> DeletionPlan:
        """Discover every candidate, kind by kind, without deleting anything."""
        refs = []
        for reaper in self.reapers:
            self.reporter.info(f"Searching for {reaper.kind.value} with {reaper.describe_scope()}...")
            refs.extend(reaper.safe_discover())
        return DeletionPlan(refs)

    @timed
    def reap(self) -> RunOutcome:
        run = RunOutcome()
        logging.info(f"Starting cleanup for region {self.config.region} "
                     f"(tag {self.config.tag_key}={self.config.project_tag}, dry_run={self.config.dry_run})")
        plan = self.plan()
        logging.info(f"Deletion plan holds {len(plan)} resource(s)")
        for index, reaper in enumerate(self.reapers, start=1):
            self.reporter.plain()
            self.reporter.section(index, reaper.kind)
            run.extend(self._reap_kind(reaper, plan.refs(reaper.kind)))
        return run

    def _reap_kind(self, reaper: ResourceReaper, refs) -> List[Outcome]:
        if not refs:
            self.reporter.warning(f"No {reaper.kind.value} found with {reaper.describe_scope()}")
            return []
        self.reporter.info(f"Found {len(refs)}: {', '.join(r.id for r in refs)}")
        reaper.recorded = []
        try:
            return reaper.reap(list(refs))
        except (ClientError, BotoCoreError) as e:
            # only setup failures get here; keep outcomes already recorded
            logging.error(f"[{self.config.region}] {reaper.kind.value} cleanup failed: {e}")
            outcomes = list(reaper.recorded)
            done = {o.ref for o in outcomes}
            for ref in refs:
                if ref not in done:
                    outcome = Outcome.failed(ref, str(e))
                    self.reporter.outcome(outcome)
                    outcomes.append(outcome)
            return outcomes


def reap(tag: str, region: str, dry_run: bool, **overrides) -> RunOutcome:
    """Run the whole teardown for ``tag`` in ``region`` and return the outcomes."""
    config = Config(project_tag=tag, region=region, dry_run=dry_run, **overrides)
    config.validate()
    reaper = LabReaper(config)
    reaper.preflight()
    return reaper.reap()
