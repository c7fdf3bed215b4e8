"""CLI entrypoint for inspecting and storing workflow documents."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from onchain_workflows import __version__
from onchain_workflows.core.config import WorkflowConfig
from onchain_workflows.storage.factory import StorageFactory
from onchain_workflows.workflow.errors import WorkflowError
from onchain_workflows.workflow.policy import build_policies, policies_to_json
from onchain_workflows.workflow.serializer import deserialize
from onchain_workflows.workflow.validator import validate_workflow

logger = logging.getLogger(__name__)


class InvalidDocumentFile(Exception):
    """Raised when a document file is not a JSON object."""


def _read_document(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise InvalidDocumentFile(f"{path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise InvalidDocumentFile(f"{path} does not contain a JSON object")
    return data


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="onchain-workflows",
        description="Validate, inspect and store on-chain workflow documents",
    )
    parser.add_argument("--version", action="version", version=f"onchain-workflows {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="Deserialize and validate a document")
    validate.add_argument("file", type=Path, help="Path to a workflow document (JSON)")

    policies = subparsers.add_parser(
        "policies", help="Print the policy scope each job of a document is authorised with"
    )
    policies.add_argument("file", type=Path, help="Path to a workflow document (JSON)")
    policies.add_argument(
        "--production",
        action="store_true",
        help="Use the production workflow registry (defaults to WORKFLOW_CHAIN_PRODUCTION)",
    )

    upload = subparsers.add_parser("upload", help="Upload a document to the configured storage")
    upload.add_argument("file", type=Path, help="Path to a workflow document (JSON)")

    fetch = subparsers.add_parser("fetch", help="Download a document from the configured storage")
    fetch.add_argument("content_id", help="Content id returned by upload")
    fetch.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the document to this file instead of stdout",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = WorkflowConfig()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    config.setup_logging()
    chains = config.chains.registry()

    try:
        if args.command == "validate":
            workflow = deserialize(_read_document(args.file))
            report = validate_workflow(workflow, chains=chains)
            print(report.status.message)
            for error in report.errors:
                print(f"- {error}")
            return 0 if report.ok else 4

        if args.command == "policies":
            workflow = deserialize(_read_document(args.file))
            registry_address = chains.registry_address(args.production or config.chains.production)
            scope = [
                {
                    "jobId": job.id,
                    "chainId": job.chain_id,
                    "policies": policies_to_json(
                        build_policies(workflow, job, registry_address=registry_address)
                    ),
                }
                for job in workflow.jobs
            ]
            print(json.dumps(scope, indent=2))
            return 0

        if args.command == "upload":
            payload = _read_document(args.file)
            # Refuse to store documents that could never be executed.
            deserialize(payload)
            storage = StorageFactory.create(config.storage)
            content_id = storage.upload(payload)
            print(content_id)
            return 0

        if args.command == "fetch":
            storage = StorageFactory.create(config.storage)
            document = storage.download(args.content_id)
            text = json.dumps(document, indent=2, ensure_ascii=False)
            if args.output is None:
                print(text)
            else:
                args.output.write_text(text + "\n", encoding="utf-8")
                logger.info(
                    "Document written",
                    extra={"content_id": args.content_id, "path": str(args.output)},
                )
            return 0

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except (InvalidDocumentFile, WorkflowError) as e:
        logger.warning(str(e), extra={"command": args.command})
        print(f"Invalid workflow document: {e}", file=sys.stderr)
        details = getattr(e, "details", None)
        if isinstance(details, list):
            for item in details:
                print(f"- {item}", file=sys.stderr)
        return 3

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
