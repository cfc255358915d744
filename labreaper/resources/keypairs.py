import logging
from pathlib import Path
from botocore.exceptions import BotoCoreError, ClientError

from labreaper.core.matchers import PrefixMatcher, tags_to_dict
from labreaper.core.outcomes import Outcome, ResourceKind
from labreaper.core.retry import retry_call
from labreaper.resources.base import ResourceReaper


class KeyPairReaper(ResourceReaper):
    """Key pairs are matched by name prefix; the lab scripts never tag them."""
    kind = ResourceKind.KEY_PAIR

    @property
    def matcher(self):
        return PrefixMatcher(self.config.key_prefix)

    def discover(self):
        ec2 = self.client('ec2')
        matcher = self.matcher
        refs = []
        for kp in ec2.describe_key_pairs().get('KeyPairs', []):
            name = kp['KeyName']
            if matcher.matches(name, tags_to_dict(kp.get('Tags'))):
                refs.append(self.ref(name, kp.get('KeyPairId', '')))
        return refs

    def local_key_files(self, key_name):
        """Private-key files the creation script may have written for ``key_name``."""
        file_name = f"{key_name}.pem"
        return [self.config.key_dir / file_name, Path(file_name)]

    def reap(self, refs):
        outcomes = []
        ec2 = None if self.config.dry_run else self.client('ec2')
        for ref in refs:
            if self.config.dry_run:
                self._record(outcomes, Outcome.planned(ref))
                continue
            try:
                retry_call(lambda: ec2.delete_key_pair(KeyName=ref.id), f"Delete key pair {ref.id}")
                self._record(outcomes, Outcome.deleted(ref))
            except (ClientError, BotoCoreError) as e:
                logging.error(f"[{self.config.region}] Failed to delete key pair {ref.id}: {e}")
                self._record(outcomes, Outcome.failed(ref, self._failure_reason(e)))
            self._remove_local_keys(ref.id)
        return outcomes

    def _remove_local_keys(self, key_name):
        for path in self.local_key_files(key_name):
            if not path.is_file():
                continue
            try:
                path.unlink()
                self.reporter.success(f"Local key file {path} removed")
            except OSError as e:
                logging.warning(f"Could not remove local key file {path}: {e}")
                self.reporter.warning(f"Could not remove local key file {path}: {e.strerror}")
