"""
Command Line Interface Module

Provides CLI commands for host pool image rollouts.
"""

import sys
import signal
import logging
import argparse
import threading
from typing import Optional

import yaml

from .config_loader import ConfigLoader, redact
from .errors import HostRestartFailedError
from .validator import ConfigValidator
from .image_watcher import ImageWatcher, utc_now
from .models import ImageVersionRecord, RolloutStatus
from .parameter_builder import ParameterBuilder
from .pipeline import RolloutPipeline
from .session import AzureSession


class RolloutCLI:
    """Command-line interface for avd-rollout."""

    def __init__(self):
        """Initialize the CLI."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create the argument parser."""
        parser = argparse.ArgumentParser(
            prog='avd-rollout',
            description='avd-rollout - Roll new session host images out to Azure Virtual Desktop',
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # Roll out today's image, if there is one
  avd-rollout run --config rollout.yaml

  # Validate configuration
  avd-rollout validate --config rollout.yaml

  # Render the parameter document for the newest image without deploying
  avd-rollout render --config rollout.yaml --output parameters.json

  # Restart all session hosts of an existing pool in two waves
  avd-rollout restart --config rollout.yaml --host-pool we-app-avd-build.2024.05.17.03
            """
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        # Run command
        run_parser = subparsers.add_parser(
            'run',
            help='Detect a new image and roll it out'
        )
        run_parser.add_argument(
            '--config', '-c',
            required=True,
            help='Path to YAML configuration file'
        )
        run_parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Detect and render parameters without deploying'
        )
        run_parser.add_argument(
            '--subscription-id',
            help='Azure subscription ID'
        )
        run_parser.add_argument(
            '--strict',
            action='store_true',
            help='Exit with an error when any session host failed to restart'
        )
        run_parser.add_argument(
            '--verbose', '-v',
            action='store_true',
            help='Enable verbose output'
        )

        # Validate command
        validate_parser = subparsers.add_parser(
            'validate',
            help='Validate configuration file'
        )
        validate_parser.add_argument(
            '--config', '-c',
            required=True,
            help='Path to YAML configuration file'
        )
        validate_parser.add_argument(
            '--verbose', '-v',
            action='store_true',
            help='Print the effective configuration with secrets redacted'
        )

        # Render command
        render_parser = subparsers.add_parser(
            'render',
            help='Render the deployment parameter document'
        )
        render_parser.add_argument(
            '--config', '-c',
            required=True,
            help='Path to YAML configuration file'
        )
        render_parser.add_argument(
            '--output', '-o',
            required=True,
            help='Output path for the rendered parameters'
        )
        render_parser.add_argument(
            '--format',
            choices=['json', 'yaml'],
            default='json',
            help='Output format (default: json)'
        )
        render_parser.add_argument(
            '--folder',
            help='Image folder name to render for (default: newest folder)'
        )

        # Restart command
        restart_parser = subparsers.add_parser(
            'restart',
            help='Restart all session hosts of a host pool in two waves'
        )
        restart_parser.add_argument(
            '--config', '-c',
            required=True,
            help='Path to YAML configuration file'
        )
        restart_parser.add_argument(
            '--host-pool',
            required=True,
            help='Host pool name'
        )
        restart_parser.add_argument(
            '--verbose', '-v',
            action='store_true',
            help='Enable verbose output'
        )

        # Version command
        subparsers.add_parser('version', help='Show version information')

        return parser

    def run(self, args: Optional[list] = None):
        """
        Run the CLI with the given arguments.

        Args:
            args: Command-line arguments (defaults to sys.argv[1:])
        """
        parsed_args = self.parser.parse_args(args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        verbose = getattr(parsed_args, 'verbose', False)
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.INFO,
            format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        )
        # SDK request logging is noisy and may echo headers
        logging.getLogger('azure').setLevel(logging.WARNING)

        try:
            if parsed_args.command == 'run':
                return self._run(parsed_args)
            elif parsed_args.command == 'validate':
                return self._validate(parsed_args)
            elif parsed_args.command == 'render':
                return self._render(parsed_args)
            elif parsed_args.command == 'restart':
                return self._restart(parsed_args)
            elif parsed_args.command == 'version':
                return self._version()
        except Exception as e:
            print(f"Error: {e}", file=sys.stderr)
            details = getattr(e, 'details', None)
            if details:
                print(f"Details: {details}", file=sys.stderr)
            if verbose:
                import traceback
                traceback.print_exc()
            return 1

        return 0

    def _load_config(self, args, subscription_id: Optional[str] = None) -> Optional[dict]:
        """Load and validate configuration, printing findings."""
        print(f"Loading configuration from {args.config}...")

        loader = ConfigLoader(args.config)
        config = loader.load()
        if subscription_id:
            config['azure']['subscription_id'] = subscription_id
        loader.validate_structure()

        validator = ConfigValidator()
        is_valid, errors, warnings = validator.validate(config)

        if warnings:
            print("\nWarnings:")
            for warning in warnings:
                print(f"  ⚠️  {warning}")

        if not is_valid:
            print("\nValidation failed:")
            for error in errors:
                print(f"  ❌ {error}")
            return None

        return config

    def _run(self, args) -> int:
        """Handle run command."""
        config = self._load_config(args, args.subscription_id)
        if config is None:
            return 1

        if args.dry_run:
            result = RolloutPipeline(config).run(dry_run=True)
            return self._report(result, args.strict)

        cancel_event = threading.Event()
        previous = signal.signal(signal.SIGTERM, lambda signum, frame: cancel_event.set())
        try:
            with AzureSession(config) as session:
                pipeline = RolloutPipeline(config, session, cancel_event=cancel_event)
                result = pipeline.run()
        finally:
            signal.signal(signal.SIGTERM, previous)

        return self._report(result, args.strict)

    def _report(self, result, strict: bool = False) -> int:
        """Print the outcome of a run."""
        if result.status == RolloutStatus.NO_CHANGE:
            print("\n✅ No new image published today, nothing to do")
            return 0

        spec = result.spec
        print(f"\nImage: {result.image.folder_name}")
        print(f"Host pool: {spec.host_pool_name}")
        print(f"VM name prefix: {spec.vm_name_prefix}")
        print(f"Workspace: {spec.workspace_name}")
        print(f"Registration token expires: {spec.token_expiration_iso}")

        if result.status == RolloutStatus.DRY_RUN:
            print("\n✅ Dry run completed successfully")
            return 0

        for wave in result.waves:
            print(f"Wave {wave.wave}: {len(wave.restarted)}/{len(wave.hosts)} host(s) restarted")

        failures = result.failed_hosts
        if failures:
            print("\nRestart failures:")
            for host, error in failures.items():
                print(f"  ❌ {host}: {error}")
            if strict:
                raise HostRestartFailedError(failures)
            print("\n⚠️  Rollout completed with host restart failures")
            return 0

        print("\n✅ Rollout completed successfully")
        return 0

    def _validate(self, args) -> int:
        """Handle validate command."""
        print(f"Loading configuration from {args.config}...")

        loader = ConfigLoader(args.config)
        config = loader.load()

        print("Validating configuration...")

        try:
            loader.validate_structure()
        except ValueError as e:
            print(f"\n❌ {e}")
            return 1

        if args.verbose:
            print("\nEffective configuration:")
            print(yaml.safe_dump(redact(config), default_flow_style=False, sort_keys=False))

        validator = ConfigValidator()
        is_valid, errors, warnings = validator.validate(config)

        if warnings:
            print("\nWarnings:")
            for warning in warnings:
                print(f"  ⚠️  {warning}")

        if errors:
            print("\nErrors:")
            for error in errors:
                print(f"  ❌ {error}")

        if is_valid:
            print("\n✅ Configuration is valid")
            return 0
        else:
            print("\n❌ Configuration is invalid")
            return 1

    def _render(self, args) -> int:
        """Handle render command."""
        config = self._load_config(args)
        if config is None:
            return 1

        if args.folder:
            image = ImageVersionRecord(folder_name=args.folder, last_write=utc_now())
        else:
            repository = config['repository']
            image = ImageWatcher(repository['root'], repository['images_dir']).detect_latest()

        builder = ParameterBuilder(config)
        spec = builder.build_spec(image)
        _, document = builder.load_documents()
        builder.save_parameters(builder.render_parameters(document, spec), args.output, args.format)

        print(f"\n✅ Parameters for {spec.host_pool_name} written to {args.output}")
        return 0

    def _restart(self, args) -> int:
        """Handle restart command."""
        config = self._load_config(args)
        if config is None:
            return 1

        with AzureSession(config) as session:
            pipeline = RolloutPipeline(config, session)
            waves = pipeline.restart_orchestrator().run(args.host_pool)

        failed = False
        for wave in waves:
            print(f"Wave {wave.wave}: {len(wave.restarted)}/{len(wave.hosts)} host(s) restarted")
            for host, error in wave.failures.items():
                failed = True
                print(f"  ❌ {host}: {error}")

        if failed:
            print("\n❌ Some session hosts failed to restart")
            return 1

        print("\n✅ Both restart waves completed")
        return 0

    def _version(self) -> int:
        """Handle version command."""
        from . import __version__, __author__
        print(f"avd-rollout version {__version__}")
        print(f"Author: {__author__}")
        return 0


def main():
    """Main entry point for the CLI."""
    cli = RolloutCLI()
    sys.exit(cli.run())


if __name__ == '__main__':
    main()
