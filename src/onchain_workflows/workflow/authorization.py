"""Abstract base class for authorization systems.

An authorization system turns a policy scope into an opaque session credential
that lets a delegate (the executor) act for the workflow owner, and later turns
that credential back into an account handle. Only the adapter interprets the
credential's contents.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from .policy import Policy
from .types import Account, Signer


class AuthorizationSystem(ABC):
    """Pluggable session-key backend.

    `mint` runs a fixed sequence: select the chain context, create a signer handle for
    the delegate, build the owner's delegated account restricted to the policies, and
    serialize it. Adapters implement the individual steps.
    """

    def mint(
        self,
        *,
        chain_id: int,
        owner: Signer | Account,
        delegate_address: str,
        policies: Sequence[Policy],
    ) -> str:
        """Produce a session credential for one job.

        Args:
            chain_id: Chain the job runs on.
            owner: The workflow owner, who grants the delegation.
            delegate_address: Address of the executor allowed to use the session.
            policies: Policy scope the session is restricted to.

        Returns:
            Opaque credential text.
        """
        self.select_chain(chain_id)
        delegate = self.delegate_signer(delegate_address)
        account = self.delegated_account(
            chain_id=chain_id, owner=owner, delegate=delegate, policies=policies
        )
        return self.serialize_account(account)

    def select_chain(self, chain_id: int) -> None:
        """Switch any chain-sensitive signer state to `chain_id`. No-op by default."""

    @abstractmethod
    def delegate_signer(self, delegate_address: str) -> Any:
        """Create a signer handle for the delegate that carries no private key."""
        pass

    @abstractmethod
    def delegated_account(
        self,
        *,
        chain_id: int,
        owner: Signer | Account,
        delegate: Any,
        policies: Sequence[Policy],
    ) -> Any:
        """Build the owner's account with `delegate` restricted by `policies`."""
        pass

    @abstractmethod
    def serialize_account(self, account: Any) -> str:
        pass

    @abstractmethod
    def restore(self, *, chain_id: int, credential: str, signer: Signer) -> Any:
        """Rebuild the account handle from a credential.

        Raises:
            Exception: Any adapter error if the credential is not usable by `signer`.
        """
        pass
