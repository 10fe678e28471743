"""
Command Line Interface for the Web Harvester.

Usage Examples:
--------------

# Extract with the rules in a file (YAML or JSON)
python -m web_harvester.cli extract rules/example.yaml

# Several rules files, four workers, custom configuration
python -m web_harvester.cli extract rules/*.yaml -w 4 -c config/production.yaml

# Write the outputs to a file
python -m web_harvester.cli extract rules/example.yaml -o out.json

# Create default configuration
python -m web_harvester.cli config --create-default -o config/default.yaml

# Validate configuration
python -m web_harvester.cli config --validate config/my_config.yaml

# Verbose logging
python -m web_harvester.cli -v extract rules/example.yaml
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config.harvester_config import (
    ConfigLoader,
    ConfigurationError,
    load_rules_file,
    validate_config,
)
from .core.batch import BatchExtractor, BatchResult
from .core.errors import ErrorSet
from .core.harvester import Harvester
from .core.rules import release_rules


def setup_logging(verbose: bool = False, log_file: Optional[str] = None):
    """
    Setup logging configuration.

    Logs go to stderr so extracted JSON on stdout stays clean.

    Args:
        verbose: Enable debug-level logging if True
        log_file: Also write logs to this file
    """
    level = logging.DEBUG if verbose else logging.INFO

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )

    # Set third-party loggers to WARNING to reduce noise
    if not verbose:
        logging.getLogger('urllib3').setLevel(logging.WARNING)
        logging.getLogger('requests').setLevel(logging.WARNING)


def _result_entry(source: str, result: BatchResult) -> Dict[str, Any]:
    entry: Dict[str, Any] = {'source': source, 'url': result.rules.url}
    if result.output is not None:
        entry['output'] = result.output.serializable()
        if result.output.errors:
            entry['errors'] = result.output.errors.to_dict()
    if result.error is not None:
        if isinstance(result.error, ErrorSet):
            entry['error'] = result.error.to_dict()
        else:
            entry['error'] = f"{result.error.__class__.__name__}: {result.error}"
    return entry


def extract_command(args):
    """
    Execute the extract command.

    Args:
        args: Parsed command-line arguments
    """
    logger = logging.getLogger(__name__)

    try:
        if args.config:
            logger.info(f"Loading configuration from {args.config}")
            config = ConfigLoader.load_from_yaml(args.config)
        else:
            logger.info("Using default configuration")
            config = ConfigLoader.create_default_config()

        # Override with command line arguments
        if args.user_agent:
            config.fetch.user_agent = args.user_agent
            logger.info(f"Set user_agent to {args.user_agent}")

        if args.delay is not None:
            config.extraction.defaults.delay_ms = args.delay
            logger.info(f"Set delay to {args.delay} ms")

        if args.ignore_robots:
            config.extraction.respect_robots_txt = False
            logger.info("robots.txt will not be checked")

        validate_config(config)
    except ConfigurationError as e:
        print(f"✗ Configuration error: {e}", file=sys.stderr)
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    harvester = Harvester.from_config(config)
    failed = False

    rules_list = []
    sources = []
    entries: List[Dict[str, Any]] = []
    for path in args.rules:
        try:
            raw_rules = load_rules_file(path)
        except ConfigurationError as e:
            print(f"✗ {e}", file=sys.stderr)
            failed = True
            continue

        for i, raw in enumerate(raw_rules):
            source = path if len(raw_rules) == 1 else f"{path}[{i}]"
            try:
                rules_list.append(harvester.load_rules(raw))
                sources.append(source)
            except ErrorSet as e:
                print(f"✗ Invalid rules in {source}: {e}", file=sys.stderr)
                entries.append({'source': source, 'error': e.to_dict()})
                failed = True

    try:
        results = BatchExtractor(harvester, num_workers=args.workers).run(rules_list)
        for source, result in zip(sources, results):
            entries.append(_result_entry(source, result))
            if not result.ok:
                failed = True
                print(f"✗ {source}: extraction reported errors", file=sys.stderr)
            else:
                print(f"✓ {source}: {result.rules.url}", file=sys.stderr)
    finally:
        for rules in rules_list:
            release_rules(rules)
        harvester.clear()

    payload = json.dumps(entries, indent=2, ensure_ascii=False)
    if args.output:
        Path(args.output).parent.mkdir(parents=True, exist_ok=True)
        Path(args.output).write_text(payload + "\n", encoding='utf-8')
        logger.info(f"Wrote {len(entries)} result(s) to {args.output}")
    else:
        print(payload)

    if failed:
        sys.exit(1)


def config_command(args):
    """
    Execute the config command.

    Args:
        args: Parsed command-line arguments
    """
    logger = logging.getLogger(__name__)

    try:
        if args.create_default:
            config = ConfigLoader.create_default_config()
            output_path = args.output or 'config/default.yaml'

            ConfigLoader.save_to_yaml(config, output_path)
            print(f"✓ Default configuration created at: {output_path}")
            logger.info(f"Default configuration created at {output_path}")

        elif args.validate:
            print(f"Validating configuration: {args.validate}")
            config = ConfigLoader.load_from_yaml(args.validate)
            validate_config(config)
            print(f"✓ Configuration is valid: {args.validate}")
            logger.info(f"Configuration {args.validate} is valid")

        else:
            print("Error: Please specify --create-default or --validate")
            sys.exit(1)

    except ConfigurationError as e:
        print(f"✗ Configuration error: {e}")
        logger.error(f"Configuration error: {e}")
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='web-harvester',
        description='Web Harvester - rule-based structured data extraction',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s extract rules/example.yaml
  %(prog)s extract rules/*.yaml -w 4 -o out.json
  %(prog)s config --create-default -o config/default.yaml
  %(prog)s config --validate config/my_config.yaml
        """
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose (debug) logging'
    )

    parser.add_argument(
        '--log-file',
        metavar='FILE',
        help='Also write logs to FILE'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # ========================================================================
    # EXTRACT COMMAND
    # ========================================================================
    extract_parser = subparsers.add_parser(
        'extract',
        help='Fetch pages and extract data with rules files',
        description='Run every rules mapping in the given YAML or JSON files'
    )

    extract_parser.add_argument(
        'rules',
        nargs='+',
        help='Rules file(s), each holding a mapping or a list of mappings'
    )

    extract_parser.add_argument(
        '-c', '--config',
        help='Path to YAML configuration file (default: use built-in defaults)'
    )

    extract_parser.add_argument(
        '-o', '--output',
        metavar='FILE',
        help='Write JSON results to FILE instead of stdout'
    )

    extract_parser.add_argument(
        '-w', '--workers',
        type=int,
        default=1,
        metavar='N',
        help='Number of worker threads (default: 1)'
    )

    extract_parser.add_argument(
        '--user-agent',
        metavar='STRING',
        help='Custom User-Agent string'
    )

    extract_parser.add_argument(
        '--delay',
        type=int,
        metavar='MS',
        help='Default delay between requests to the same host (milliseconds)'
    )

    extract_parser.add_argument(
        '--ignore-robots',
        action='store_true',
        help='Do not check robots.txt'
    )

    extract_parser.set_defaults(func=extract_command)

    # ========================================================================
    # CONFIG COMMAND
    # ========================================================================
    config_parser = subparsers.add_parser(
        'config',
        help='Configuration management',
        description='Create or validate configuration files'
    )

    config_parser.add_argument(
        '--create-default',
        action='store_true',
        help='Create a default configuration file'
    )

    config_parser.add_argument(
        '--validate',
        metavar='FILE',
        help='Validate a configuration file'
    )

    config_parser.add_argument(
        '-o', '--output',
        metavar='FILE',
        help='Output path for created configuration (default: config/default.yaml)'
    )

    config_parser.set_defaults(func=config_command)

    return parser


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.log_file)

    if hasattr(args, 'func'):
        args.func(args)
    else:
        parser.print_help()
        sys.exit(0)


if __name__ == '__main__':
    main()
