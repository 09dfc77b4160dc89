"""Check that the tool's platform registration and signing keys are usable.

Three commands are available:

``check``
    Load ``AppSettings`` from the given ``.env`` file and make sure the
    configured signing mode has what it needs: a consumer key and shared
    secret for OAuth 1, or a parseable RSA private key for client assertions.
``record``
    Run ``check`` and write a baseline listing the SHA256 digest of the
    ``.env`` file and, when configured, of the private key file.
``verify``
    Run ``check`` and compare every file in the baseline with its digest,
    so a replaced key or an edited registration is noticed before grade
    passback starts failing.

Example::

    python -m scripts.check_env record --env-file /opt/lti-tool/.env \
        --baseline /opt/lti-tool/credentials.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path
from typing import Dict, List

from pydantic import ValidationError

from ltiadvantage.clients.signing import SigningError, load_private_key
from ltiadvantage.core.config import AppSettings, _load_env_file

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5


class CredentialError(ValueError):
    """The configured signing mode is missing a credential."""


def _digest(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


def _load_settings(env_file: Path) -> AppSettings:
    if not env_file.exists():
        raise FileNotFoundError(f"Environment file {env_file} does not exist.")
    _load_env_file(str(env_file))
    settings = AppSettings()  # type: ignore[call-arg]

    if settings.platform.uses_oauth1:
        if not (settings.platform.consumer_key and settings.platform.shared_secret):
            raise CredentialError(
                f"{settings.platform.signature_method} signing needs LTI_CONSUMER_KEY "
                "and LTI_SHARED_SECRET."
            )
        return settings

    pem = settings.tool.load_private_key()
    if pem is None:
        raise CredentialError(
            "Client assertions need LTI_TOOL_PRIVATE_KEY or LTI_TOOL_PRIVATE_KEY_PATH."
        )
    try:
        load_private_key(pem)
    except SigningError as exc:
        raise CredentialError(str(exc)) from exc
    return settings


def _tracked_files(env_file: Path, settings: AppSettings) -> List[Path]:
    files = [env_file]
    key_path = settings.tool.private_key_path
    if not settings.platform.uses_oauth1 and not settings.tool.private_key and key_path:
        files.append(key_path)
    return files


def _record(files: List[Path], baseline: Path) -> int:
    lines = [f"{_digest(path)}  {path}" for path in files]
    baseline.write_text("\n".join(lines) + "\n", encoding="utf-8")
    print(f"Recorded {len(lines)} digest(s) to {baseline}")
    return EXIT_OK


def _read_baseline(baseline: Path) -> Dict[str, str]:
    recorded: Dict[str, str] = {}
    for line in baseline.read_text(encoding="utf-8").splitlines():
        digest, sep, name = line.partition("  ")
        if sep:
            recorded[name] = digest
    return recorded


def _verify(files: List[Path], baseline: Path) -> int:
    if not baseline.exists():
        print(
            f"Baseline {baseline} is missing; run the 'record' command first.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    recorded = _read_baseline(baseline)
    drifted = [
        str(path)
        for path in files
        if recorded.get(str(path)) != (_digest(path) if path.exists() else None)
    ]
    drifted.extend(name for name in recorded if name not in {str(path) for path in files})
    if not drifted:
        print("Credentials match the recorded baseline.")
        return EXIT_OK

    print("Changed since the baseline was recorded:", file=sys.stderr)
    for name in drifted:
        print(f"  {name}", file=sys.stderr)
    return EXIT_CHECKSUM_ERROR


def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--env-file",
        default=".env",
        type=Path,
        help="Environment file holding the LTI_* settings (default: .env).",
    )
    with_baseline = argparse.ArgumentParser(add_help=False, parents=[common])
    with_baseline.add_argument(
        "--baseline",
        required=True,
        type=Path,
        help="Digest file written by 'record' and read by 'verify'.",
    )

    parser = argparse.ArgumentParser(
        description="Validate the platform registration and detect credential drift."
    )
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("check", parents=[common], help="Validate settings only.")
    commands.add_parser(
        "record", parents=[with_baseline], help="Validate and write the digest baseline."
    )
    commands.add_parser(
        "verify", parents=[with_baseline], help="Validate and compare with the baseline."
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        settings = _load_settings(args.env_file)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except ValidationError as exc:
        print(f"Invalid platform registration:\n{exc}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    except CredentialError as exc:
        print(f"Signing credentials are incomplete: {exc}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR

    if args.command == "check":
        print(f"Registration for {settings.platform.platform_id} is valid.")
        return EXIT_OK

    files = _tracked_files(args.env_file, settings)
    if args.command == "record":
        return _record(files, args.baseline)
    return _verify(files, args.baseline)


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
