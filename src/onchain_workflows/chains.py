"""Chain configuration.

The core never reaches for a global chain table. Callers build a `ChainRegistry`
(typically from settings, see `core.config.ChainSettings.registry`) and pass it
to every operation that needs chain endpoints or registry addresses.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import IntEnum
from types import MappingProxyType

from onchain_workflows.workflow.errors import UnsupportedChain

PRODUCTION_REGISTRY_ADDRESS = "0x7D48195F9b04ef4001B23b012411cb2E20ca86A8"
TESTING_REGISTRY_ADDRESS = "0x580F57c1668d9272aE54168f630cc84b10ec65F7"


class ChainId(IntEnum):
    ETHEREUM = 1
    GOERLI = 5
    SEPOLIA = 11155111
    OPTIMISM = 10
    OPTIMISM_GOERLI = 420
    ARBITRUM = 42161
    ARBITRUM_GOERLI = 421613
    POLYGON = 137
    MUMBAI = 80001
    BASE = 8453
    BASE_GOERLI = 84531
    BASE_SEPOLIA = 84532


@dataclass(frozen=True, slots=True)
class ChainConfig:
    chain_id: int
    name: str
    rpc_url: str | None = None


def _chain_name(chain_id: int) -> str:
    try:
        return ChainId(chain_id).name.lower().replace("_", "-")
    except ValueError:
        return f"chain-{chain_id}"


class ChainRegistry:
    """Read-only lookup of the chains a deployment supports."""

    def __init__(
        self,
        chains: Iterable[ChainConfig],
        *,
        production_registry: str = PRODUCTION_REGISTRY_ADDRESS,
        testing_registry: str = TESTING_REGISTRY_ADDRESS,
    ) -> None:
        self._chains = MappingProxyType({chain.chain_id: chain for chain in chains})
        self._production_registry = production_registry
        self._testing_registry = testing_registry

    @classmethod
    def from_chain_ids(
        cls,
        chain_ids: Iterable[int] | None = None,
        *,
        service_url: str | None = None,
    ) -> ChainRegistry:
        """Build a registry whose RPC endpoints live under ``{service_url}/bundler/{chain_id}``.

        Without a service URL the chains are still known (for validation) but carry
        no endpoint.
        """

        ids = [int(c) for c in chain_ids] if chain_ids is not None else [int(c) for c in ChainId]
        base = service_url.rstrip("/") if service_url else None
        return cls(
            ChainConfig(
                chain_id=chain_id,
                name=_chain_name(chain_id),
                rpc_url=f"{base}/bundler/{chain_id}" if base else None,
            )
            for chain_id in ids
        )

    def get(self, chain_id: int) -> ChainConfig | None:
        return self._chains.get(chain_id)

    def require(self, chain_id: int) -> ChainConfig:
        chain = self._chains.get(chain_id)
        if chain is None:
            raise UnsupportedChain(chain_id)
        return chain

    def registry_address(self, is_production: bool) -> str:
        """Address of the workflow registry contract that records runs."""

        return self._production_registry if is_production else self._testing_registry

    @property
    def chain_ids(self) -> list[int]:
        return list(self._chains)

    def __contains__(self, chain_id: object) -> bool:
        return chain_id in self._chains

    def __iter__(self) -> Iterator[ChainConfig]:
        return iter(self._chains.values())

    def __len__(self) -> int:
        return len(self._chains)
