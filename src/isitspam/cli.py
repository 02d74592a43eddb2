from argparse import ArgumentParser, Namespace
import logging
from pathlib import Path
import sys
from typing import Final

from isitspam import config, static_config
from isitspam.client.errors import IsItSpamError, ValidationError
from isitspam.logs import configure_logging

logger = logging.getLogger("isitspam.cli")

ENV_TEMPLATE: Final[str] = f"""\
# is-it-spam.com API configuration
#
# Get your credentials from the dashboard at https://is-it-spam.com/dashboard.
# Values set here are overridden by real environment variables and by files
# in a secrets directory.

IS_IT_SPAM_API_KEY=your_api_key_here
IS_IT_SPAM_API_SECRET=your_api_secret_here

# Optional settings
# IS_IT_SPAM_BASE_URL={static_config.DEFAULT_BASE_URL}
# IS_IT_SPAM_TIMEOUT={static_config.DEFAULT_TIMEOUT_SEC}
# IS_IT_SPAM_TRACK_END_USER_IP=true
# IS_IT_SPAM_LOG_LEVEL=INFO
# IS_IT_SPAM_LOG_JSON=true
"""

USAGE_HINT: Final[str] = """\
Next steps:
1. Fill in your API credentials in {path}
2. Call install_spam_gate(app) when creating your FastAPI app
3. Guard form routes with the gate, e.g.

   @app.post("/contact", dependencies=[is_it_spam(on_spam={{"redirect_to": "/", "notice": "Thank you for your message"}})])
"""


def _parse_field(raw: str) -> tuple[str, str]:
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise ValueError(f"Expected KEY=VALUE, got {raw!r}")
    return key, value


def _build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        "isitspam", description="Command line tools for the is-it-spam.com API"
    )
    parser.add_argument(
        "--version", action="version", version=static_config.USER_AGENT
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("health", help="Check whether the API is available")

    check = commands.add_parser("check", help="Run a spam check")
    check.add_argument("--name", "-n", type=str, required=True, help="Sender name")
    check.add_argument("--email", "-e", type=str, required=True, help="Sender email")
    check.add_argument(
        "--message", "-m", type=str, required=True, help="Message to classify"
    )
    check.add_argument(
        "--field",
        "-f",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Additional form field (repeatable)",
    )
    check.add_argument("--ip", type=str, default=None, help="Submitter IP address")
    check.add_argument(
        "--json", action="store_true", help="Print the result as JSON"
    )

    init = commands.add_parser("init", help="Write a .env configuration template")
    init.add_argument(
        "--path", "-p", type=Path, default=Path(".env"), help="Target file"
    )
    init.add_argument(
        "--force", action="store_true", help="Overwrite an existing file"
    )

    return parser


def _health(configuration: config.Configuration) -> int:
    if configuration.client.health_check():
        print("healthy")
        return 0

    print("unavailable")
    return 1


def _check(args: Namespace, configuration: config.Configuration) -> int:
    custom_fields = dict(_parse_field(raw) for raw in args.field)

    result = configuration.client.check_spam(
        args.name, args.email, args.message, custom_fields, args.ip
    )

    print(result.to_json() if args.json else result.summary())
    return 0


def _init(args: Namespace) -> int:
    path: Path = args.path

    if path.exists() and not args.force:
        print(f"{path} already exists, use --force to overwrite", file=sys.stderr)
        return 1

    path.write_text(ENV_TEMPLATE)
    print(f"Wrote {path}")
    print(USAGE_HINT.format(path=path))
    return 0


def main(
    argv: list[str] | None = None, configuration: config.Configuration | None = None
) -> int:
    """
    Entry point for the `isitspam` CLI tool.

    Parameters
    ----------
    argv : list[str] | None
        Arguments to parse instead of `sys.argv[1:]`.
    configuration : Configuration | None
        Configuration to use instead of the global one.

    Returns
    -------
    int
        Process exit status.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    configuration = configuration or config.get_configuration()
    settings = configuration.settings
    configure_logging(json_logs=settings.LOG_JSON, level=settings.LOG_LEVEL)

    if args.command == "init":
        return _init(args)

    try:
        if args.command == "health":
            return _health(configuration)
        return _check(args, configuration)
    except ValueError as e:
        parser.error(str(e))
    except ValidationError as e:
        for field, messages in e.errors.items():
            print(f"{field}: {', '.join(messages)}", file=sys.stderr)
        return 1
    except IsItSpamError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
