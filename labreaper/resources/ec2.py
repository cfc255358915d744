import logging
from botocore.exceptions import BotoCoreError, ClientError

from labreaper.core.matchers import TagMatcher, tags_to_dict
from labreaper.core.outcomes import Outcome, ResourceKind
from labreaper.core.retry import retry_call
from labreaper.resources.base import ResourceReaper

LIVE_STATES = ['pending', 'running', 'stopping', 'stopped']


class InstanceReaper(ResourceReaper):
    kind = ResourceKind.INSTANCE

    @property
    def matcher(self):
        return TagMatcher(self.config.tag_key, self.config.project_tag)

    def discover(self):
        ec2 = self.client('ec2')
        matcher = self.matcher
        refs = []
        paginator = ec2.get_paginator('describe_instances')
        pages = paginator.paginate(Filters=[
            matcher.as_filter(),
            {'Name': 'instance-state-name', 'Values': LIVE_STATES},
        ])
        for page in pages:
            for reservation in page.get('Reservations', []):
                for instance in reservation.get('Instances', []):
                    tags = tags_to_dict(instance.get('Tags'))
                    if not matcher.matches(instance['InstanceId'], tags):
                        continue
                    refs.append(self.ref(instance['InstanceId'], tags.get('Name', '')))
        return refs

    def reap(self, refs):
        outcomes = []
        if self.config.dry_run:
            for ref in refs:
                self._record(outcomes, Outcome.planned(ref))
            return outcomes

        ec2 = self.client('ec2')
        initiated = []
        for ref in refs:
            self._disable_termination_protection(ec2, ref.id)
            try:
                retry_call(lambda: ec2.terminate_instances(InstanceIds=[ref.id]),
                           f"Terminate instance {ref.id}")
                logging.info(f"[{self.config.region}] Termination initiated for {ref.id}")
                self.reporter.info(f"Instance {ref.id} termination initiated")
                initiated.append(ref)
            except (ClientError, BotoCoreError) as e:
                logging.error(f"[{self.config.region}] Failed to terminate instance {ref.id}: {e}")
                self._record(outcomes, Outcome.failed(ref, self._failure_reason(e)))

        if initiated:
            outcomes.extend(self._wait_for_termination(ec2, initiated))
        return outcomes

    def _disable_termination_protection(self, ec2, instance_id):
        try:
            attr = ec2.describe_instance_attribute(InstanceId=instance_id, Attribute='disableApiTermination')
            if attr['DisableApiTermination']['Value']:
                logging.info(f"[{self.config.region}] Disabling termination protection for {instance_id}")
                ec2.modify_instance_attribute(InstanceId=instance_id, DisableApiTermination={'Value': False})
        except (ClientError, BotoCoreError) as e:
            logging.warning(f"[{self.config.region}] Failed to check/disable termination protection for {instance_id}: {e}")

    def _wait_for_termination(self, ec2, refs):
        """Block until every instance is terminated or the waiter gives up."""
        outcomes = []
        ids = [ref.id for ref in refs]
        self.reporter.info("Waiting for instances to terminate...")
        try:
            ec2.get_waiter('instance_terminated').wait(
                InstanceIds=ids,
                WaiterConfig={
                    'Delay': self.config.instance_wait_delay,
                    'MaxAttempts': self.config.instance_wait_attempts,
                },
            )
        except (ClientError, BotoCoreError) as e:
            # WaiterError (timeout) is a BotoCoreError too
            logging.error(f"[{self.config.region}] Gave up waiting for instances {ids}: {e}")
            pending = self._still_running(ec2, ids)
            for ref in refs:
                if ref.id in pending:
                    self._record(outcomes, Outcome.failed(ref, 'timeout'))
                else:
                    self._record(outcomes, Outcome.deleted(ref))
            return outcomes

        for ref in refs:
            self._record(outcomes, Outcome.deleted(ref))
        return outcomes

    def _still_running(self, ec2, ids):
        """IDs among ``ids`` not yet in the terminated state; all of them if unknown."""
        try:
            resp = ec2.describe_instances(InstanceIds=ids)
        except (ClientError, BotoCoreError) as e:
            logging.warning(f"[{self.config.region}] Could not re-check instance states: {e}")
            return set(ids)
        pending = set()
        for reservation in resp.get('Reservations', []):
            for instance in reservation.get('Instances', []):
                if instance.get('State', {}).get('Name') != 'terminated':
                    pending.add(instance['InstanceId'])
        return pending
