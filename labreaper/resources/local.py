import logging
from pathlib import Path

from labreaper.core.outcomes import Outcome, ResourceKind
from labreaper.resources.base import ResourceReaper


class LocalArtifactReaper(ResourceReaper):
    """Removes files the creation scripts left under the output directory.

    Covers ``info/*.txt``, ``samples/*.txt`` and the lab's private keys in
    ``keys/``. Purely local, so a failure here only marks that one file.
    """
    kind = ResourceKind.LOCAL_FILE

    def patterns(self):
        return [
            (self.config.info_dir, '*.txt'),
            (self.config.sample_dir, '*.txt'),
            (self.config.key_dir, f"{self.config.key_prefix}*.pem"),
        ]

    def describe_scope(self):
        return f"files under {self.config.output_dir}"

    def discover(self):
        refs = []
        for directory, pattern in self.patterns():
            if not directory.is_dir():
                continue
            for path in sorted(directory.glob(pattern)):
                if path.is_file():
                    refs.append(self.ref(str(path), path.name))
        return refs

    def reap(self, refs):
        outcomes = []
        for ref in refs:
            if self.config.dry_run:
                self._record(outcomes, Outcome.planned(ref))
                continue
            try:
                Path(ref.id).unlink()
                self._record(outcomes, Outcome.deleted(ref))
            except FileNotFoundError:
                self._record(outcomes, Outcome.skipped(ref, 'already removed'))
            except OSError as e:
                logging.warning(f"Could not remove {ref.id}: {e}")
                self._record(outcomes, Outcome.failed(ref, e.strerror or str(e)))
        return outcomes
