"""
face_auth - Command Line Entry Point

Usage:
    python -m face_auth enroll                        # Enroll using the webcam
    python -m face_auth enroll --image me.jpg         # Enroll from a still image
    python -m face_auth verify --email a@x.com        # Log in with password + face
    python -m face_auth download-models               # Fetch YuNet/SFace ONNX files (FACE_MODEL=opencv)
    python -m face_auth status                        # Show configuration and readiness
"""

import sys
import asyncio
import argparse
import getpass
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

# .env must be loaded before the settings object is built on import
_ENV_PATH = Path.cwd() / ".env"
if _ENV_PATH.exists():
    load_dotenv(_ENV_PATH)

from .core.config import get_settings, Settings
from .core.exceptions import FaceAuthError, DetailsValidationError
from .core.logger import get_logger, configure_logging
from .core.state import AppState, create_app_state
from .capture.providers import StillImageCamera
from .flows import EnrollmentState, VerificationState
from .ml.download_models import download_all
from .schemas.common import AppStatusResponse
from .schemas.enrollment import REQUIRED_ATTRIBUTES

logger = get_logger("cli")


# =============================================================================
# HELPERS
# =============================================================================

def _on_success(identifier: str) -> None:
    logger.info(f"Access granted for {identifier}")


def _parse_attributes(pairs: Optional[List[str]]) -> Dict[str, str]:
    attributes = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep:
            raise argparse.ArgumentTypeError(f"Expected key=value, got {pair!r}")
        attributes[key.strip()] = value.strip()
    return attributes


def _prompt(label: str, value: Optional[str] = None, secret: bool = False) -> str:
    if value:
        return value
    if secret:
        return getpass.getpass(f"{label}: ")
    return input(f"{label}: ").strip()


def _print_status(flow, as_json: bool) -> None:
    if as_json:
        print(flow.status().model_dump_json(indent=2))


def build_settings(args: argparse.Namespace) -> Settings:
    """Apply command line overrides on top of the environment settings."""
    config = get_settings()
    if getattr(args, "store", None):
        config = config.model_copy(
            update={"store": config.store.model_copy(update={"backend": args.store})}
        )
    return config


def build_app(args: argparse.Namespace, config: Settings) -> AppState:
    camera = StillImageCamera(args.image) if getattr(args, "image", None) else None
    return create_app_state(config, camera_provider=camera)


# =============================================================================
# COMMANDS
# =============================================================================

async def run_enroll(app: AppState, args: argparse.Namespace) -> int:
    async with app.enrollment_flow(on_success=_on_success) as flow:
        await flow.start()
        if flow.failure:
            logger.warning(f"Camera not ready: {flow.failure.value}")

        for attempt in range(1, args.captures + 1):
            logger.info(f"Capturing face (attempt {attempt}/{args.captures})...")
            if await flow.capture() is EnrollmentState.DESCRIPTOR_OBTAINED:
                break
            logger.warning(f"Capture failed: {flow.failure.value}")
        else:
            _print_status(flow, args.json)
            return 1

        await flow.proceed()

        role = args.role
        attributes = _parse_attributes(args.attr)
        for name in REQUIRED_ATTRIBUTES[role]:
            attributes[name] = _prompt(name.replace("_", " ").title(), attributes.get(name))

        details = {
            "email": _prompt("Email", args.email),
            "password": _prompt("Password", secret=True),
            "role": role,
            "attributes": attributes,
        }
        try:
            await flow.submit(details)
        except DetailsValidationError as e:
            for error in e.errors:
                logger.error(error)
            _print_status(flow, args.json)
            return 1

        _print_status(flow, args.json)
        return 0


async def run_verify(app: AppState, args: argparse.Namespace) -> int:
    async with app.verification_flow(on_success=_on_success) as flow:
        state = await flow.submit_credentials(
            _prompt("Email", args.email),
            _prompt("Password", secret=True),
        )
        if state is VerificationState.REJECTED:
            logger.error(f"Login rejected: {flow.rejection.value}")
            _print_status(flow, args.json)
            return 1

        await flow.open_camera()
        if flow.failure:
            logger.warning(f"Camera not ready: {flow.failure.value}")

        for attempt in range(1, args.captures + 1):
            logger.info(f"Capturing face (attempt {attempt}/{args.captures})...")
            state = await flow.capture()

            if state is VerificationState.AUTHENTICATED:
                logger.info(f"Face matched (distance={flow.last_distance:.4f})")
                _print_status(flow, args.json)
                return 0

            if state is VerificationState.REJECTED:
                logger.warning(f"Rejected: {flow.rejection.value}")
                if not flow.can_retry:
                    break
            elif flow.failure:
                logger.warning(f"Capture failed: {flow.failure.value}")

        _print_status(flow, args.json)
        return 1


def run_status(app: AppState) -> int:
    status = AppStatusResponse(**app.get_status())
    print(status.model_dump_json(indent=2))
    return 0


# =============================================================================
# CLI
# =============================================================================

def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    config = get_settings()

    parser = argparse.ArgumentParser(
        prog="face-auth",
        description="Face enrollment and verification",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m face_auth enroll --email a@x.com --attr full_name="Ada L" --attr phone=555
  python -m face_auth verify --email a@x.com --image live.jpg
  python -m face_auth download-models --models-dir models
        """
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=config.logging.log_level.lower(),
        choices=["critical", "error", "warning", "info", "debug"],
        help=f"Log level (default: {config.logging.log_level.lower()})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    flow_parent = argparse.ArgumentParser(add_help=False)
    flow_parent.add_argument(
        "--image",
        action="append",
        metavar="PATH",
        help="Use still image(s) instead of the webcam; repeat for retries",
    )
    flow_parent.add_argument(
        "--store",
        choices=["memory", "file", "postgres"],
        help=f"Credential store backend (default: {config.store.backend})",
    )
    flow_parent.add_argument("--email", type=str, help="Account email")
    flow_parent.add_argument(
        "--captures",
        type=int,
        default=3,
        help="Capture attempts before giving up (default: 3)",
    )
    flow_parent.add_argument(
        "--json",
        action="store_true",
        help="Print the final flow status as JSON",
    )

    enroll = subparsers.add_parser("enroll", parents=[flow_parent], help="Register a new account")
    enroll.add_argument("--role", choices=["user", "company"], default="user")
    enroll.add_argument(
        "--attr",
        action="append",
        metavar="KEY=VALUE",
        help="Profile field, e.g. full_name=Ada (repeatable)",
    )

    subparsers.add_parser("verify", parents=[flow_parent], help="Log in with password and face")

    download = subparsers.add_parser("download-models", help="Download YuNet and SFace models")
    download.add_argument(
        "--models-dir",
        type=str,
        default=None,
        help=f"Target directory (default: {config.models_path})",
    )

    status = subparsers.add_parser("status", help="Show configuration and readiness")
    status.add_argument("--store", choices=["memory", "file", "postgres"])

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        0 = success, 1 = failure or rejection
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    config = build_settings(args)
    configure_logging(args.log_level, config.logging.log_file)

    if args.command == "download-models":
        return download_all(args.models_dir)

    try:
        app = build_app(args, config)
        if args.command == "status":
            return run_status(app)
        if args.command == "enroll":
            return asyncio.run(run_enroll(app, args))
        return asyncio.run(run_verify(app, args))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 1
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))
    except FaceAuthError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
