import logging
from botocore.exceptions import BotoCoreError, ClientError

from labreaper.core.matchers import TagMatcher, tags_to_dict
from labreaper.core.outcomes import Outcome, ResourceKind
from labreaper.core.retry import error_code, retry_call
from labreaper.resources.base import ResourceReaper

IN_USE_CODES = ('DependencyViolation', 'InvalidGroup.InUse')


class SecurityGroupReaper(ResourceReaper):
    kind = ResourceKind.SECURITY_GROUP

    @property
    def matcher(self):
        return TagMatcher(self.config.tag_key, self.config.project_tag)

    def discover(self):
        ec2 = self.client('ec2')
        matcher = self.matcher
        refs = []
        paginator = ec2.get_paginator('describe_security_groups')
        for page in paginator.paginate(Filters=[matcher.as_filter()]):
            for sg in page.get('SecurityGroups', []):
                if matcher.matches(sg['GroupId'], tags_to_dict(sg.get('Tags'))):
                    refs.append(self.ref(sg['GroupId'], sg.get('GroupName', '')))
        return refs

    def reap(self, refs):
        outcomes = []
        ec2 = None if self.config.dry_run else self.client('ec2')
        for ref in refs:
            if self.config.dry_run:
                self._record(outcomes, Outcome.planned(ref))
                continue
            try:
                retry_call(lambda: ec2.delete_security_group(GroupId=ref.id), f"Delete SG {ref.id}")
                self._record(outcomes, Outcome.deleted(ref))
            except (ClientError, BotoCoreError) as e:
                if isinstance(e, ClientError) and error_code(e) in IN_USE_CODES:
                    logging.warning(f"[{self.config.region}] Security group {ref.id} is still in use: {e}")
                    self._record(outcomes, Outcome.failed(ref, 'in-use'))
                else:
                    logging.error(f"[{self.config.region}] Failed to delete security group {ref.id}: {e}")
                    self._record(outcomes, Outcome.failed(ref, self._failure_reason(e)))
        return outcomes
