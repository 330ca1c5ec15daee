"""Argument parsing, configuration loading, and single-pass bootstrap."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any

from .config import load_config
from .exceptions import ConfigurationError, EC2DiscoveryError
from .logging_config import configure_logging
from .pipeline import EXIT_FAILURE, EXIT_OK, Pipeline

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sensu-ec2-discovery",
        description="Auto-discover EC2 instances and register them as Sensu Go proxy entities.",
    )
    ec2 = parser.add_argument_group("EC2 discovery")
    ec2.add_argument(
        "-s", "--ec2-instance-states",
        help="Comma-separated instance states to discover ($EC2_INSTANCE_STATES, "
             "default: pending,running,rebooting)",
    )
    ec2.add_argument(
        "-r", "--ec2-instance-regions",
        help="Comma-separated regions to discover ($EC2_INSTANCE_REGIONS, default: all regions)",
    )
    ec2.add_argument(
        "-t", "--ec2-instance-tags",
        help="Comma-separated key=value tags that instances must carry ($EC2_INSTANCE_TAGS)",
    )
    ec2.add_argument("--aws-profile", help="Named AWS credential profile")

    sensu = parser.add_argument_group("Sensu API")
    sensu.add_argument(
        "-u", "--sensu-api-url", action="append",
        help="Sensu API URL; repeat to spread requests across backends ($SENSU_API_URL, comma-separated)",
    )
    sensu.add_argument("-n", "--sensu-namespace", help="Namespace to register entities in ($SENSU_NAMESPACE)")
    sensu.add_argument("-T", "--sensu-access-token", help="Sensu API access token ($SENSU_ACCESS_TOKEN)")
    sensu.add_argument("-k", "--sensu-api-key", help="Sensu API key ($SENSU_API_KEY)")
    sensu.add_argument("--sensu-username", help="Username for /auth login ($SENSU_USERNAME)")
    sensu.add_argument("--sensu-password", help="Password for /auth login ($SENSU_PASSWORD)")
    sensu.add_argument(
        "-c", "--sensu-trusted-ca-file",
        help="Additional TLS CA certificate bundle in PEM format ($SENSU_TRUSTED_CA_FILE)",
    )
    sensu.add_argument(
        "-i", "--sensu-insecure-skip-tls-verify", "--sensu-insecure-tls-skip-verify",
        dest="sensu_insecure_skip_tls_verify", action="store_const", const=True,
        help="Skip TLS certificate verification (not recommended!)",
    )

    parser.add_argument("--config", help="Optional YAML configuration file")
    parser.add_argument("--max-regions", type=int, help="Regions to process concurrently (default: 1)")
    parser.add_argument("--log-level", help="Log level (default: INFO)")
    parser.add_argument("--log-format", choices=("json", "text"), help="Log format (default: text)")
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate the configuration and discovery criteria and exit",
    )
    return parser


def _overrides_from_args(args: argparse.Namespace) -> dict[str, Any]:
    """Translate CLI flags into a config overlay; unset flags are None and ignored."""
    return {
        "ec2": {
            "instance_states": args.ec2_instance_states,
            "instance_regions": args.ec2_instance_regions,
            "instance_tags": args.ec2_instance_tags,
            "credential_profile": args.aws_profile,
        },
        "registry": {
            "api_urls": args.sensu_api_url,
            "namespace": args.sensu_namespace,
            "access_token": args.sensu_access_token,
            "api_key": args.sensu_api_key,
            "username": args.sensu_username,
            "password": args.sensu_password,
            "trusted_ca_file": args.sensu_trusted_ca_file,
            "insecure_skip_tls_verify": args.sensu_insecure_skip_tls_verify,
        },
        "workers": {"max_regions": args.max_regions},
        "logging": {"level": args.log_level, "format": args.log_format},
    }


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Load config (minimal logging until config is loaded)
    try:
        config = load_config(args.config, overrides=_overrides_from_args(args))
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_FAILURE

    configure_logging(config.logging)
    pipeline = Pipeline(config)

    try:
        if args.validate:
            pipeline.validate()
            logger.info("Configuration is valid")
            return EXIT_OK

        pipeline.install_signal_handlers()
        summary = pipeline.run()
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return EXIT_FAILURE
    except EC2DiscoveryError as exc:
        logger.error("Fatal error: %s", exc)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_OK

    return summary.exit_code


def run() -> None:
    """Console-script entry point."""
    sys.exit(main())
