"""Console reporting with colored markers, mirrored into the audit log."""
import sys
from typing import Optional, TextIO

from colorama import Fore, Style, just_fix_windows_console

from labreaper.core.logging import SUCCESS, get_audit_logger
from labreaper.core.outcomes import Outcome, ResourceKind, RunOutcome, Status

just_fix_windows_console()

SECTION_RULE = '=' * 40


class Reporter:
    """Prints marker lines for the user and appends the same text to the audit log.

    Markers: success ``✓``, failure ``✗``, info/planned ``→``, warning ``⚠``.
    """

    def __init__(self, stream: Optional[TextIO] = None, color: Optional[bool] = None):
        self.stream = stream or sys.stdout
        if color is None:
            color = hasattr(self.stream, 'isatty') and self.stream.isatty()
        self.color = color
        self.audit = get_audit_logger()

    def _emit(self, text: str, colour: str = '') -> None:
        if self.color and colour:
            text = f"{colour}{text}{Style.RESET_ALL}"
        print(text, file=self.stream)

    def success(self, message: str) -> None:
        self.audit.log(SUCCESS, message)
        self._emit(f"✓ {message}", Fore.GREEN)

    def error(self, message: str) -> None:
        self.audit.error(message)
        self._emit(f"✗ {message}", Fore.RED)

    def info(self, message: str) -> None:
        self.audit.info(message)
        self._emit(f"→ {message}", Fore.YELLOW)

    def warning(self, message: str) -> None:
        self.audit.warning(message)
        self._emit(f"⚠ {message}", Fore.BLUE)

    def plain(self, message: str = '') -> None:
        self._emit(message)

    def section(self, index: int, kind: ResourceKind) -> None:
        self.audit.info(f"Cleaning up {kind.value}")
        self._emit(SECTION_RULE, Fore.BLUE)
        self._emit(f"{index}. Cleaning up {kind.value}", Fore.BLUE)
        self._emit(SECTION_RULE, Fore.BLUE)

    def outcome(self, outcome: Outcome) -> None:
        label = outcome.ref.label()
        noun = outcome.ref.kind.value
        if outcome.status is Status.PLANNED:
            self.info(f"Would delete {noun}: {label}")
        elif outcome.status is Status.DELETED:
            self.success(f"Deleted {noun}: {label}")
        elif outcome.status is Status.SKIPPED:
            self.warning(f"Skipped {noun}: {label} ({outcome.reason})")
        else:
            self.error(f"Failed to delete {noun}: {label} ({outcome.reason})")

    def summary(self, run: RunOutcome, dry_run: bool, log_file=None) -> None:
        self.plain()
        self._emit('=== Cleanup Summary ===', Fore.YELLOW)
        counts = run.summary()
        if not counts:
            self.plain('No matching resources found')
        for kind, per_status in counts.items():
            parts = [f"{status.value}={n}" for status, n in per_status.items() if n]
            line = f"{kind.value}: {', '.join(parts)}"
            self.audit.info(line)
            self.plain(f"  {line}")
        self.plain()
        if dry_run:
            self._emit('Dry Run Complete!', Fore.GREEN)
            self.plain('Run without --dry-run to actually delete resources')
            self.audit.info('Dry run completed')
        elif run.has_failures:
            self._emit(f"Cleanup finished with {len(run.failures)} failure(s)", Fore.RED)
            self.audit.error(f"Cleanup finished with {len(run.failures)} failure(s)")
        else:
            self._emit('Cleanup Complete!', Fore.GREEN)
            self.audit.log(SUCCESS, 'Cleanup completed successfully')
        if log_file:
            self.plain(f"Log file: {log_file}")
