import argparse
import logging
import sys

from dotenv import load_dotenv
from prometheus_client import CollectorRegistry
from rich.console import Console

from jobwatch import __version__
from jobwatch.config import DEFAULT_CONFIG_PATH, ConfigError, load_config
from jobwatch.logging_setup import setup_logging
from jobwatch.monitor.analyzer import DEFAULT_TOP_N, analyze_records, print_analysis
from jobwatch.monitor.exceptions import CollectionError
from jobwatch.monitor.gauges import GaugeSink
from jobwatch.monitor.loop import MonitorLoop
from jobwatch.monitor.notifier import AlertDispatcher, SlackNotifier
from jobwatch.monitor.report import collect_job_processes, print_job_processes
from jobwatch.monitor.sampler import ProcessSampler
from jobwatch.monitor.storage import SeriesWriter, read_series

console = Console()


class JobwatchCLI:
    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    @property
    def log_level(self) -> int:
        return logging.DEBUG if self.verbose else logging.INFO

    def monitor(self, args: argparse.Namespace) -> int:
        """Run the monitoring loop until SIGINT/SIGTERM."""
        try:
            config = load_config(args.config)
        except ConfigError as e:
            console.print(f"[red]✗[/red] {e}", style="bold")
            return 1

        logger = setup_logging(args.log_file or config.log_file, self.log_level)

        gauges = GaugeSink(registry=CollectorRegistry(), logger=logger.getChild("gauges"))
        try:
            gauges.serve(config.prometheus.listen_address)
        except (OSError, ValueError) as e:
            logger.critical(f"Failed to start Prometheus metrics server: {e}")
            return 1

        notifier = SlackNotifier(
            config.slack.webhook_url,
            channel=config.slack.channel,
            username=config.slack.username,
            timeout=config.slack.timeout,
        )
        writer = None
        if not config.disable_collection:
            writer = SeriesWriter(args.output or config.output_file, logger=logger.getChild("storage"))

        loop = MonitorLoop(
            sampler=ProcessSampler(logger=logger.getChild("sampler")),
            thresholds=config.thresholds,
            dispatcher=AlertDispatcher(
                config.thresholds, sink=notifier, logger=logger.getChild("notifier")
            ),
            writer=writer,
            gauges=gauges,
            interval=config.interval_seconds,
            logger=logger,
        )

        try:
            loop.run()
        except OSError as e:
            logger.critical(f"Series file unavailable, stopping: {e}")
            return 1
        return 0

    def list_processes(self, args: argparse.Namespace) -> int:
        """Print the job processes running right now."""
        setup_logging(level=self.log_level)
        try:
            samples = collect_job_processes(ProcessSampler())
        except CollectionError as e:
            console.print(f"[red]✗[/red] Error getting Jenkins processes: {e}")
            return 1

        print_job_processes(samples, console=console)
        return 0

    def analyze(self, args: argparse.Namespace) -> int:
        """Print the top jobs by peak usage from a series file."""
        try:
            records = read_series(args.file)
        except OSError as e:
            console.print(f"[red]✗[/red] Failed to open input file: {e}")
            return 1

        print_analysis(analyze_records(records, top=args.top), console=console)
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jobwatch",
        description="Monitor CPU and memory usage of Jenkins build jobs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  jobwatch monitor --config config.yaml
  jobwatch monitor --output /var/lib/jobwatch/jobs.csv --log-file jobwatch.log
  jobwatch list
  jobwatch analyze data/jenkins_processes.csv --top 10

Environment Variables:
  JOBWATCH_SLACK_WEBHOOK_URL   Overrides slack.webhook_url
  JOBWATCH_LISTEN_ADDRESS      Overrides prometheus.listen_address
        """,
    )

    parser.add_argument("--version", "-V", action="version", version=f"jobwatch {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    monitor_parser = subparsers.add_parser("monitor", help="Run continuous monitoring")
    monitor_parser.add_argument(
        "--config", "-c", default=DEFAULT_CONFIG_PATH, help="Path to YAML config file"
    )
    monitor_parser.add_argument("--output", "-o", help="Series CSV file (overrides config)")
    monitor_parser.add_argument("--log-file", help="Log file (overrides config)")

    subparsers.add_parser("list", help="List running job processes")

    analyze_parser = subparsers.add_parser("analyze", help="Report top jobs from a series file")
    analyze_parser.add_argument("file", help="Series CSV file to analyze")
    analyze_parser.add_argument(
        "--top", "-n", type=int, default=DEFAULT_TOP_N, help="Jobs to show per metric"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    # Secrets such as the Slack webhook may live in a .env file
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    cli = JobwatchCLI(verbose=args.verbose)

    try:
        if args.command == "monitor":
            return cli.monitor(args)
        elif args.command == "list":
            return cli.list_processes(args)
        elif args.command == "analyze":
            return cli.analyze(args)
        else:
            parser.print_help()
            return 1
    except KeyboardInterrupt:
        print("\n❌ Operation cancelled", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"❌ Unexpected error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
