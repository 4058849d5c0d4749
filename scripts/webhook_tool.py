"""Command line helper for working with partner webhooks and SDK settings.

Three subcommands are available:

1. ``sign`` prints the ``X-Contio-Signature`` value for a payload file, handy
   for replaying a captured delivery against a local receiver.
2. ``verify`` checks a payload file against a signature header and parses the
   envelope, exactly as the receiving middleware would.
3. ``check-settings`` loads the SDK configuration from an env file and reports
   what is configured without printing secrets.

Example usages::

    python -m scripts.webhook_tool sign --payload-file delivery.json
    python -m scripts.webhook_tool verify --payload-file delivery.json \
        --signature "sha256=..."
    python -m scripts.webhook_tool check-settings --env-file .env --oauth
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from partner_sdk.core.config import OAuthSettings, load_settings
from partner_sdk.core.logging import configure_logging, mask_secret
from partner_sdk.webhooks.verifier import (
    WebhookError,
    WebhookVerificationError,
    WebhookVerifier,
    sign_payload,
)

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_SIGNATURE_ERROR = 3
EXIT_RUNTIME_ERROR = 5


def _resolve_secret(explicit: Optional[str], env_file: Path) -> str:
    """Prefer ``--secret``; fall back to ``PARTNER_WEBHOOK_SECRET``."""
    if explicit:
        return explicit
    secret = load_settings(env_file).webhook.secret
    if secret is None or not secret.get_secret_value():
        raise ValueError(
            "No webhook secret given. Pass --secret or set PARTNER_WEBHOOK_SECRET."
        )
    return secret.get_secret_value()


def _read_payload(payload_file: Path) -> bytes:
    if not payload_file.exists():
        raise FileNotFoundError(f"Payload file {payload_file} does not exist.")
    return payload_file.read_bytes()


def _sign(args: argparse.Namespace) -> int:
    payload = _read_payload(args.payload_file)
    secret = _resolve_secret(args.secret, args.env_file)
    print(sign_payload(secret, payload))
    return EXIT_OK


def _verify(args: argparse.Namespace) -> int:
    payload = _read_payload(args.payload_file)
    secret = _resolve_secret(args.secret, args.env_file)
    try:
        event = WebhookVerifier(secret).parse(payload, args.signature)
    except WebhookVerificationError as exc:
        print(f"Signature check failed: {exc}", file=sys.stderr)
        return EXIT_SIGNATURE_ERROR
    except WebhookError as exc:
        print(f"Signature OK but payload is invalid: {exc}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR

    print(f"Signature OK: {event.event_type} ({event.event_id})")
    return EXIT_OK


def _check_settings(args: argparse.Namespace) -> int:
    env_file: Path = args.env_file
    if not env_file.exists():
        raise FileNotFoundError(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool."
        )
    settings = load_settings(env_file)

    api_key = settings.api_key.api_key
    webhook_secret = settings.webhook.secret
    print(f"environment:      {settings.environment}")
    print(f"api base url:     {settings.client.base_url}")
    print(f"retries:          {settings.client.retries}")
    print(
        "api key:          "
        + mask_secret(api_key.get_secret_value() if api_key else None)
    )
    print(
        "webhook secret:   "
        + mask_secret(webhook_secret.get_secret_value() if webhook_secret else None)
    )
    if settings.webhook.skip_verification:
        print("WARNING: webhook signature verification is disabled.", file=sys.stderr)

    if args.oauth:
        oauth = OAuthSettings(_env_file=env_file)  # type: ignore[call-arg]
        print(f"oauth client id:  {oauth.client_id}")
        print(f"oauth scopes:     {' '.join(oauth.scopes)}")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Sign and verify webhook payloads, and validate SDK settings."
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("PARTNER_LOG_LEVEL", "WARNING"),
        help="Logging level for SDK log records (default: WARNING).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common_arguments(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env in the repo root).",
        )

    def add_payload_arguments(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument(
            "--payload-file",
            required=True,
            type=Path,
            help="File holding the exact raw request body.",
        )
        subparser.add_argument(
            "--secret",
            default=None,
            help="Webhook secret (default: PARTNER_WEBHOOK_SECRET).",
        )

    sign_parser = subparsers.add_parser("sign", help="Print the signature header.")
    add_common_arguments(sign_parser)
    add_payload_arguments(sign_parser)

    verify_parser = subparsers.add_parser(
        "verify", help="Verify a payload against a signature header."
    )
    add_common_arguments(verify_parser)
    add_payload_arguments(verify_parser)
    verify_parser.add_argument(
        "--signature",
        required=True,
        help="Value of the signature header, e.g. sha256=<hex>.",
    )

    check_parser = subparsers.add_parser(
        "check-settings", help="Validate SDK settings from the env file."
    )
    add_common_arguments(check_parser)
    check_parser.add_argument(
        "--oauth",
        action="store_true",
        help="Also require the OAuth client settings.",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    handlers = {
        "sign": _sign,
        "verify": _verify,
        "check-settings": _check_settings,
    }
    try:
        return handlers[args.command](args)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_VALIDATION_ERROR


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
