"""labreaper CLI entry point."""
import argparse
import logging
import sys

from labreaper.core.config import default_region, load_config
from labreaper.core.errors import ConfigError, PreflightError
from labreaper.core.logging import setup_logging, get_run_id
from labreaper.core.report import Reporter
from labreaper.reaper import LabReaper

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_FAILURES = 2
EXIT_INTERRUPTED = 130

CONFIRM_TOKEN = 'yes'


class UsageParser(argparse.ArgumentParser):
    """Prints usage and exits 1 on bad arguments instead of argparse's 2."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(EXIT_ERROR, f"{self.prog}: error: {message}\n")


def build_parser():
    parser = UsageParser(
        prog='labreaper',
        description='Delete the EC2 instances, key pairs, security groups and S3 buckets '
                    'created for the lab, plus the local files they left behind.')
    parser.add_argument('--dry-run', action='store_true',
                        help='Preview what would be deleted without deleting anything')
    parser.add_argument('--region',
                        help=f'AWS region (default: AWS_DEFAULT_REGION or {default_region()})')
    parser.add_argument('--tag', help='Value of the project tag to clean up')
    parser.add_argument('--output-dir', help='Directory holding logs/, keys/, info/ and samples/')
    parser.add_argument('--config', '-c', help='Path to YAML config file')
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='Verbosity: -v=INFO, -vv=DEBUG')
    parser.add_argument('--json-logs', action='store_true',
                        help='Output console logs in JSON format')
    parser.add_argument('--yes', action='store_true',
                        help='Skip the interactive confirmation')
    parser.add_argument('--strict', action='store_true',
                        help=f'Exit with {EXIT_FAILURES} if any resource failed to delete')
    return parser


def parse_args(argv=None):
    return build_parser().parse_args(argv)


def build_config(args):
    config = load_config(args.config)

    # CLI args override config
    if args.region:
        config.region = args.region
    if args.tag:
        config.project_tag = args.tag
    if args.output_dir:
        config.output_dir = args.output_dir
    if args.verbose:
        config.verbosity = args.verbose
    if args.json_logs:
        config.json_logs = True
    if args.dry_run:
        config.dry_run = True
    config.validate()
    return config


def confirm_deletion(config, reporter, read=input):
    """Ask for the literal confirmation token; anything else declines."""
    reporter.error(f"WARNING: This will delete all resources tagged with "
                   f"{config.tag_key}={config.project_tag} in {config.region}")
    reporter.error("This action cannot be undone!")
    try:
        answer = read("Are you sure you want to continue? (yes/no): ")
    except (EOFError, KeyboardInterrupt):
        reporter.plain()
        answer = ''
    return answer == CONFIRM_TOKEN


def main(argv=None, session=None, read=input):
    args = parse_args(argv)
    reporter = Reporter()

    try:
        config = build_config(args)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_ERROR

    log_file = config.log_file()
    setup_logging(config.verbosity, config.json_logs, log_file)
    logging.info(f"labreaper run_id={get_run_id()} dry_run={config.dry_run} log_file={log_file}")

    reporter.plain('AWS Resource Cleanup')
    if config.dry_run:
        reporter.warning("DRY RUN MODE - No resources will be deleted")

    reaper = LabReaper(config, session=session, reporter=reporter)
    try:
        reporter.info("Verifying AWS credentials...")
        account_id = reaper.preflight()
        reporter.success(f"AWS credentials verified for account {account_id}")
    except PreflightError as e:
        reporter.error(str(e))
        if e.remedy:
            reporter.plain(e.remedy)
        return EXIT_ERROR

    if not config.dry_run and not args.yes:
        if not confirm_deletion(config, reporter, read):
            reporter.plain("Cleanup cancelled.")
            logging.info("Cleanup cancelled by user")
            return EXIT_OK

    try:
        run = reaper.reap()
    except KeyboardInterrupt:
        logging.warning("Cancelled by user")
        reporter.warning("Interrupted; resources may be partially deleted")
        return EXIT_INTERRUPTED

    reporter.summary(run, config.dry_run, log_file)
    if args.strict and run.has_failures:
        return EXIT_FAILURES
    return EXIT_OK


def run():
    sys.exit(main())


if __name__ == '__main__':
    run()
