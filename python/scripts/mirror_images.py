#!/usr/bin/env python3
"""
Mirror container images into a registry namespace you own.

For every source image the script pulls it, retags it under the destination
namespace and pushes it. Afterwards it writes shell scripts that let other
hosts fetch the mirrored copies and restore the original names:

- output.sh:   docker pull <target> / docker tag <target> <source>
- cusreg.sh:   docker tag/push to a further custom registry (only if one is given)
- nerdctl.sh:  the same restore steps for containerd hosts (nerdctl -n k8s.io)

Workflow:
1. Validate the requested image list and the destination credentials
2. Log in to the destination registry
3. Transfer all images concurrently (bounded by mirror.max_workers)
4. Render the restore scripts from the successful transfers
5. Write a JSON report and print a summary table

Usage examples:
  # Mirror two images into the "alice" namespace on Docker Hub
  python mirror_images.py --content '{"hub-mirror": ["nginx:1.25", "gcr.io/distroless/static"]}' \\
    --username alice --password "$DOCKER_TOKEN"

  # Also emit scripts that republish to a private registry
  python mirror_images.py --content '{"hub-mirror": ["nginx:1.25"], "custom-registry": "myreg.io"}' \\
    --username alice --password "$DOCKER_TOKEN"
"""

import argparse
import json
import sys
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError, as_completed
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from threading import Event
from typing import Any, Dict, List, Optional, Sequence, Tuple

# Add parent directory to path for imports
_parent_dir = Path(__file__).parent.parent.absolute()
if str(_parent_dir) not in sys.path:
    sys.path.insert(0, str(_parent_dir))

from utils.config_manager import config_manager, validation_enabled
from utils.docker_client import DockerClient
from utils.error_utils import (
    ActionableError,
    ConfigError,
    EmptyResultError,
    TransferError,
    TransferStage,
    create_config_error,
)
from utils.image_naming import destination_prefix, iter_mirror_pairs
from utils.logging_utils import get_logger, log_exception, setup_logging
from utils.report_utils import format_summary_table, save_json, save_script
from utils.result_ledger import ResultLedger, TransferFailure
from utils.script_generator import CUSTOM_REGISTRY_SCRIPT, NERDCTL_SCRIPT, PULL_SCRIPT, ScriptArtifact, render_scripts
from utils.transfer import Credentials, transfer_image

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_PARTIAL = 2


@dataclass(frozen=True)
class MirrorRequest:
    """The images to mirror and an optional registry to republish them to."""

    sources: Tuple[str, ...]
    custom_registry: Optional[str] = None

    @property
    def image_count(self) -> int:
        """Number of non-empty source references."""
        return sum(1 for source in self.sources if source)


def parse_mirror_request(content: str, max_content: int) -> MirrorRequest:
    """Decode ``{"hub-mirror": [...], "custom-registry": "..."}``.

    Empty entries are kept (and later skipped) and don't count against
    ``max_content``.

    Raises:
        ConfigError: If the content is malformed or lists too many images
    """
    try:
        data = json.loads(content)
    except (TypeError, ValueError) as e:
        raise create_config_error("content", content, f"not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise create_config_error("content", content, "expected a JSON object")

    sources = data.get("hub-mirror") or []
    if not isinstance(sources, list) or not all(isinstance(s, str) for s in sources):
        raise create_config_error("hub-mirror", sources, "expected a list of image references")

    custom_registry = data.get("custom-registry") or None
    if custom_registry is not None and not isinstance(custom_registry, str):
        raise create_config_error("custom-registry", custom_registry, "expected a registry host string")

    request = MirrorRequest(sources=tuple(sources), custom_registry=custom_registry)
    if request.image_count > max_content:
        raise create_config_error(
            "mirror.max_content",
            request.image_count,
            f"{request.image_count} images requested, at most {max_content} allowed",
        )
    return request


class ImageMirror:
    """Runs the transfers for one mirror request."""

    def __init__(
        self,
        client,
        max_workers: Optional[int] = None,
        timeout: Optional[float] = None,
        fail_fast: Optional[bool] = None,
    ):
        """Initialize the mirror

        Args:
            client: Registry client used by every transfer (e.g. DockerClient)
            max_workers: Concurrent transfers (default: from config)
            timeout: Overall run timeout in seconds (default: from config, None or 0 = no limit)
            fail_fast: Cancel remaining transfers on the first failure (default: from config)

        Raises:
            ConfigError: If the timeout is negative
        """
        if timeout is None:
            timeout = config_manager.get_timeout()
        if timeout is not None and timeout < 0:
            raise create_config_error("mirror.timeout", timeout, "must be a non-negative number of seconds")

        self.client = client
        self.max_workers = max_workers or config_manager.get_max_workers()
        self.timeout = timeout or None
        self.fail_fast = fail_fast if fail_fast is not None else config_manager.is_fail_fast()
        self.logger = get_logger(self.__class__.__name__)

    def _mirror_one(
        self,
        source: str,
        target: str,
        auth_config: Dict[str, str],
        ledger: ResultLedger,
        cancel_event: Event,
    ) -> bool:
        try:
            record = transfer_image(self.client, source, target, auth_config, cancel_event)
        except TransferError as e:
            ledger.add_failure(TransferFailure.from_error(e))
            if e.stage is TransferStage.CANCELLED:
                self.logger.warning(f"  Skipped {source}: run cancelled")
                return False
            self.logger.error(f"  Failed to {e.stage.value} {source} => {target}: {e.cause}")
            if self.fail_fast and not cancel_event.is_set():
                self.logger.warning("Fail-fast enabled, cancelling remaining transfers")
                cancel_event.set()
            return False

        ledger.add_record(record)
        return True

    def _join(self, futures: List[Any], cancel_event: Event) -> None:
        total = len(futures)
        completed = 0
        try:
            for _ in as_completed(futures, timeout=self.timeout):
                completed += 1
                self.logger.info(f"  Progress: {completed}/{total} transfers finished")
        except FuturesTimeoutError:
            self.logger.error(f"Run timed out after {self.timeout}s, cancelling transfers that have not finished")
            cancel_event.set()
            for _ in as_completed([f for f in futures if not f.done()]):
                completed += 1
                self.logger.info(f"  Progress: {completed}/{total} transfers finished")

        for future in futures:
            # Surface unexpected worker crashes; transfer failures are already in the ledger
            future.result()

    def run(self, sources: Sequence[str], namespace: str, auth_config: Dict[str, str]) -> ResultLedger:
        """Mirror every non-empty source into ``namespace``.

        Returns:
            The ledger of successful and failed transfers

        Raises:
            TransferError: In fail-fast mode, the first transfer failure
            EmptyResultError: If no transfer succeeded
        """
        ledger = ResultLedger()
        cancel_event = Event()
        pairs = list(iter_mirror_pairs(sources, namespace))

        self.logger.info(f"Mirroring {len(pairs)} images into {namespace} (using {self.max_workers} workers)...")

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="mirror") as executor:
            futures = [
                executor.submit(self._mirror_one, source, target, auth_config, ledger, cancel_event)
                for source, target in pairs
            ]
            self._join(futures, cancel_event)

        self.logger.info(f"Mirrored {len(ledger)}/{len(pairs)} images")

        if self.fail_fast:
            fatal = next((f for f in ledger.failures if f.stage is not TransferStage.CANCELLED), None)
            if fatal is not None:
                raise TransferError(fatal.source, fatal.target, fatal.error, stage=fatal.stage)

        if ledger.is_empty():
            raise EmptyResultError(ledger.failures)

        return ledger


def write_artifacts(artifacts: List[ScriptArtifact], paths: Dict[str, str]) -> Dict[str, str]:
    """Write each artifact to the path registered for its name.

    Raises:
        ConfigError: If a script path cannot be written
    """
    written = {}
    for artifact in artifacts:
        path = paths[artifact.name]
        try:
            written[artifact.name] = save_script(path, artifact.text)
        except OSError as e:
            raise create_config_error("output_dir", path, f"cannot write script: {e}") from e
    return written


def save_report(path: str, report: Dict[str, Any]) -> str:
    """Write the JSON run report, raising ConfigError if the path is not writable."""
    try:
        return save_json(path, report)
    except OSError as e:
        raise create_config_error("output_dir", path, f"cannot write report: {e}") from e


def build_report(
    request: MirrorRequest,
    namespace: str,
    records: List[Any],
    failures: List[TransferFailure],
    scripts: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    return {
        "summary": {
            "requested": request.image_count,
            "mirrored": len(records),
            "failed": len(failures),
        },
        "succeeded": [{"source": r.source, "target": r.target} for r in records],
        "failed": [f.to_dict() for f in failures],
        "scripts": scripts or {},
        "metadata": {
            "namespace": namespace,
            "custom_registry": request.custom_registry,
            "timestamp": datetime.now().isoformat(),
        },
    }


def _non_negative_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value}")
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be non-negative, got: {value}")
    return number


def parse_arguments(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        description="Mirror container images into your own registry namespace",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Mirror images into the "alice" namespace
  python mirror_images.py --content '{"hub-mirror": ["nginx:1.25"]}' --username alice --password TOKEN

  # Read the request from a file and republish to a private registry
  python mirror_images.py --content-file images.json --username alice --password TOKEN

  # Stop everything on the first failed transfer
  python mirror_images.py --content-file images.json --username alice --password TOKEN --fail-fast
        """,
    )

    content_group = parser.add_mutually_exclusive_group(required=True)
    content_group.add_argument(
        "--content",
        help='Images to mirror, as JSON: {"hub-mirror": [...], "custom-registry": "..."}',
    )
    content_group.add_argument(
        "--content-file",
        help="File containing the JSON request",
    )
    content_group.add_argument(
        "--show-config",
        action="store_true",
        help="Print the effective configuration and exit",
    )

    parser.add_argument(
        "--max-content",
        type=int,
        help="Maximum number of images per run (default: mirror.max_content from config)",
    )
    parser.add_argument("--username", help="Destination registry username (default: DOCKER_USERNAME)")
    parser.add_argument("--password", help="Destination registry password (default: DOCKER_PASSWORD)")
    parser.add_argument("--namespace", help="Destination namespace (default: the username)")
    parser.add_argument("--output-path", help="Pull script path (default: output.sh)")
    parser.add_argument("--custom-registry-path", help="Custom registry script path (default: cusreg.sh)")
    parser.add_argument("--nerdctl-path", help="nerdctl script path (default: nerdctl.sh)")
    parser.add_argument("--report-path", help="JSON report path (default: mirror-report.json)")
    parser.add_argument("--max-workers", type=int, help="Concurrent transfers (default: mirror.max_workers)")
    parser.add_argument(
        "--timeout",
        type=_non_negative_float,
        help="Overall run timeout in seconds, 0 = no limit (default: mirror.timeout)",
    )
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        default=None,
        help="Cancel the remaining transfers and write nothing when any transfer fails",
    )

    return parser.parse_args(argv)


def _read_content(args) -> str:
    if args.content is not None:
        return args.content
    try:
        return Path(args.content_file).read_text()
    except OSError as e:
        raise create_config_error("content-file", args.content_file, str(e)) from e


def main(argv: Optional[List[str]] = None) -> int:
    setup_logging()
    args = parse_arguments(argv)

    request = None
    destination = None
    report_path = None

    try:
        if validation_enabled():
            config_manager.validate_config()

        if args.show_config:
            config_manager.print_config()
            return EXIT_OK

        report_path = args.report_path or config_manager.get_report_path()
        script_paths = {
            PULL_SCRIPT: args.output_path or config_manager.get_pull_script_path(),
            CUSTOM_REGISTRY_SCRIPT: args.custom_registry_path or config_manager.get_custom_registry_script_path(),
            NERDCTL_SCRIPT: args.nerdctl_path or config_manager.get_nerdctl_script_path(),
        }

        logger.info("Validating mirror request")
        max_content = args.max_content if args.max_content is not None else config_manager.get_max_content()
        request = parse_mirror_request(_read_content(args), max_content)
        logger.info(f"Requested images:   {request.image_count}")
        logger.info(f"Custom registry:    {request.custom_registry or 'not set'}")

        env_username, env_password = config_manager.get_registry_credentials()
        credentials = Credentials(args.username or env_username, args.password or env_password)
        server = config_manager.get_registry_server()
        namespace = args.namespace or config_manager.get_namespace(credentials.username)
        destination = destination_prefix(namespace, server)
        logger.info(f"Destination:        {destination}")

        logger.info("Connecting to Docker")
        client = DockerClient(config_manager)
        client.login(credentials.username, credentials.password, server)

        mirror = ImageMirror(client, max_workers=args.max_workers, timeout=args.timeout, fail_fast=args.fail_fast)
        ledger = mirror.run(request.sources, destination, credentials.auth_config())
        records, failures = ledger.records, ledger.failures

        artifacts = render_scripts(
            records,
            custom_registry=request.custom_registry,
            tool=config_manager.get_containerd_tool(),
            containerd_namespace=config_manager.get_containerd_namespace(),
        )
        written = write_artifacts(artifacts, script_paths)
        save_report(report_path, build_report(request, destination, records, failures, written))

        logger.info("Mirror summary:\n" + format_summary_table(records, failures))
        if failures:
            logger.warning(f"{len(failures)} of {request.image_count} images failed to mirror")
            return EXIT_PARTIAL
        return EXIT_OK

    except EmptyResultError as e:
        log_exception(logger, "Mirror run produced no images", exc_info=e)
        if request is not None:
            logger.info("Mirror summary:\n" + format_summary_table([], e.failures))
            try:
                save_report(report_path, build_report(request, destination, [], e.failures))
            except ConfigError as write_error:
                log_exception(logger, "Failed to write the mirror report", exc_info=write_error)
        return EXIT_FATAL
    except ActionableError as e:
        log_exception(logger, "Mirror run failed", exc_info=e)
        return EXIT_FATAL
    except KeyboardInterrupt:
        logger.warning("\nMirror run interrupted by user")
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
