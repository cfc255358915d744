import logging
from botocore.exceptions import BotoCoreError, ClientError

from labreaper.core.logging import timed
from labreaper.core.matchers import AnyOf, PrefixMatcher, TagMatcher, tags_to_dict
from labreaper.core.outcomes import Outcome, ResourceKind, VersionRef
from labreaper.core.retry import error_code, retry_call
from labreaper.resources.base import ResourceReaper

BATCH_SIZE = 1000
NO_TAGS_CODES = ('NoSuchTagSet', 'NoSuchBucket', 'AccessDenied')


def batched(items, size=BATCH_SIZE):
    for start in range(0, len(items), size):
        yield items[start:start + size]


class BucketReaper(ResourceReaper):
    """Deletes matching buckets after emptying them.

    A bucket matches on the project tag or on the lab's bucket naming
    convention. For every bucket the current objects are removed first, then
    every object version and every delete marker, and only then the bucket
    itself. The emptying steps are best effort so the bucket delete is always
    attempted.
    """
    kind = ResourceKind.BUCKET

    @property
    def matcher(self):
        return AnyOf(
            TagMatcher(self.config.tag_key, self.config.project_tag),
            PrefixMatcher(self.config.bucket_prefix),
        )

    def discover(self):
        s3 = self.client('s3')
        matcher = self.matcher
        refs = []
        for bucket in s3.list_buckets().get('Buckets', []):
            name = bucket['Name']
            if matcher.matches(name, self._bucket_tags(s3, name)):
                refs.append(self.ref(name))
        return refs

    def _bucket_tags(self, s3, bucket_name):
        try:
            return tags_to_dict(s3.get_bucket_tagging(Bucket=bucket_name).get('TagSet'))
        except ClientError as e:
            if error_code(e) not in NO_TAGS_CODES:
                logging.debug(f"Could not read tags of bucket {bucket_name}: {e}")
            return {}

    @timed
    def reap(self, refs):
        outcomes = []
        s3 = None if self.config.dry_run else self.client('s3')
        for ref in refs:
            if self.config.dry_run:
                self._record(outcomes, Outcome.planned(ref))
                continue
            self.reporter.info(f"Removing all objects from {ref.id}...")
            self.empty_bucket(s3, ref.id)
            try:
                retry_call(lambda: s3.delete_bucket(Bucket=ref.id), f"Delete S3 bucket {ref.id}")
                self._record(outcomes, Outcome.deleted(ref))
            except (ClientError, BotoCoreError) as e:
                logging.error(f"Failed to delete S3 bucket {ref.id}: {e}")
                reason = self._failure_reason(e)
                if reason == 'BucketNotEmpty':
                    reason = 'non-empty'
                self._record(outcomes, Outcome.failed(ref, reason))
        return outcomes

    def empty_bucket(self, s3, bucket_name):
        """Remove current objects, then all versions and delete markers."""
        self._delete_current_objects(s3, bucket_name)
        self._abort_multipart_uploads(s3, bucket_name)
        try:
            versions, markers = self.list_versions(s3, bucket_name)
        except (ClientError, BotoCoreError) as e:
            logging.warning('Could not list object versions in %s: %s', bucket_name, e)
            return
        self._delete_versions(s3, bucket_name, versions, 'object versions')
        self._delete_versions(s3, bucket_name, markers, 'delete markers')

    def list_versions(self, s3, bucket_name):
        versions, markers = [], []
        paginator = s3.get_paginator('list_object_versions')
        for page in paginator.paginate(Bucket=bucket_name):
            versions += [VersionRef(v['Key'], v['VersionId']) for v in page.get('Versions', [])]
            markers += [VersionRef(d['Key'], d['VersionId'], is_delete_marker=True)
                        for d in page.get('DeleteMarkers', [])]
        return versions, markers

    def _delete_current_objects(self, s3, bucket_name):
        try:
            keys = []
            paginator = s3.get_paginator('list_objects_v2')
            for page in paginator.paginate(Bucket=bucket_name):
                keys += [{'Key': obj['Key']} for obj in page.get('Contents', [])]
        except (ClientError, BotoCoreError) as e:
            logging.warning('Could not list objects in %s: %s', bucket_name, e)
            return
        self._delete_batches(s3, bucket_name, keys, 'current objects')

    def _delete_versions(self, s3, bucket_name, refs, what):
        self._delete_batches(s3, bucket_name, [r.as_identifier() for r in refs], what)

    def _delete_batches(self, s3, bucket_name, identifiers, what):
        if not identifiers:
            return
        logging.info(f"Deleting {len(identifiers)} {what} from {bucket_name}")
        for batch in batched(identifiers):
            try:
                resp = retry_call(
                    lambda: s3.delete_objects(Bucket=bucket_name, Delete={'Objects': batch, 'Quiet': True}),
                    f"Deleting {what} in {bucket_name}")
            except (ClientError, BotoCoreError) as e:
                logging.warning('Could not delete %s in %s: %s', what, bucket_name, e)
                continue
            for err in (resp or {}).get('Errors', []):
                logging.warning(f"Could not delete {err.get('Key')} in {bucket_name}: {err.get('Code')}")

    def _abort_multipart_uploads(self, s3, bucket_name):
        try:
            paginator = s3.get_paginator('list_multipart_uploads')
            uploads = [u for page in paginator.paginate(Bucket=bucket_name) for u in page.get('Uploads', [])]
            for upload in uploads:
                key, upload_id = upload['Key'], upload['UploadId']
                retry_call(lambda: s3.abort_multipart_upload(Bucket=bucket_name, Key=key, UploadId=upload_id),
                           f"Abort MPU for {key}")
        except (ClientError, BotoCoreError) as e:
            logging.warning('Could not abort multipart uploads in %s: %s', bucket_name, e)
