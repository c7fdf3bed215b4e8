#!/usr/bin/env python3
"""Programmatic workflow example.

This demonstrates using the library components directly:

* load settings from `.env`
* build a workflow with a cron trigger and one job
* validate it and print the policy scope of each job
* serialize it and store the document in the configured storage

The authorization system below only records the policies it was given. A real
deployment plugs in an adapter for its session-key provider.
"""

from __future__ import annotations

import argparse
import json
from collections.abc import Sequence
from typing import Any

from onchain_workflows.core.config import WorkflowConfig
from onchain_workflows.storage.factory import StorageFactory
from onchain_workflows.workflow import JobBuilder, Step, WorkflowBuilder, validate_workflow
from onchain_workflows.workflow.authorization import AuthorizationSystem
from onchain_workflows.workflow.execution import submit_workflow
from onchain_workflows.workflow.policy import Policy, build_policies, policies_to_json
from onchain_workflows.workflow.types import Account


class RecordingAuthorization(AuthorizationSystem):
    """Encodes the granted policies as the credential. Not a security mechanism."""

    def delegate_signer(self, delegate_address: str) -> Any:
        return delegate_address

    def delegated_account(
        self, *, chain_id: int, owner: Any, delegate: Any, policies: Sequence[Policy]
    ) -> Any:
        return {
            "chainId": chain_id,
            "owner": owner.address,
            "delegate": delegate,
            "policies": policies_to_json(policies),
        }

    def serialize_account(self, account: Any) -> str:
        return json.dumps(account, sort_keys=True)

    def restore(self, *, chain_id: int, credential: str, signer: Any) -> Any:
        return json.loads(credential)


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build and store a workflow (example).")
    parser.add_argument("--owner", required=True, help="Owner address (0x...)")
    parser.add_argument("--executor", required=True, help="Executor address (0x...)")
    parser.add_argument("--target", required=True, help="Contract to call (0x...)")
    parser.add_argument("--chain-id", type=int, default=11155111, help="Chain id of the job")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    config = WorkflowConfig()
    config.setup_logging()
    chains = config.chains.registry()

    workflow = (
        WorkflowBuilder.create(args.owner)
        .add_cron_trigger("*/10 * * * *")
        .set_count(3)
        .set_interval(600)
        .add_job(
            JobBuilder.create("mint")
            .set_chain_id(args.chain_id)
            .add_step(
                Step(
                    target=args.target,
                    signature="mint(address to, uint256 amount)",
                    args=(args.owner, "1000000000000000000"),
                )
            )
        )
        .build()
    )

    report = validate_workflow(workflow, chains=chains)
    print(f"Validation: {report.status.message}")
    typed = workflow.typify()
    for job in typed.jobs:
        policies = build_policies(
            typed, job, registry_address=chains.registry_address(config.chains.production)
        )
        print(json.dumps(policies_to_json(policies), indent=2))

    result = submit_workflow(
        workflow,
        executor_address=args.executor,
        signer=Account(address=args.owner),
        storage=StorageFactory.create(config.storage),
        authorization=RecordingAuthorization(),
        chains=chains,
        is_production=config.chains.production,
    )
    print(f"Stored workflow document: {result.content_id}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
