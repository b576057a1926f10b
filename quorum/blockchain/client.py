"""
quorum.blockchain.client — Blockchain Query Interfaces
=======================================================

Read-only view of the on-chain voting program consumed by reconciliation.
The concrete client (RPC transport, account decoding) lives outside this
package; anything matching these protocols can be plugged in via the
``blockchain_service`` config key.

Every lookup is a coroutine that returns ``None`` when the account does not
exist, a mapping of canonical snake_case fields otherwise, and raises on
transport errors:

- community  → ``{"name", "description", "config"}``
- membership → ``{"role", "status"}``
- question   → ``{"title", "description", "options", "deadline", "status"}``
- vote       → ``{"vote_data", "signature"}``
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

ChainRecord = Mapping[str, Any]


@runtime_checkable
class ContractManager(Protocol):
    """State queries against the voting program."""

    async def get_community_data(self, on_chain_id: str) -> ChainRecord | None: ...

    async def get_membership_data(
        self, community_on_chain_id: str, wallet_address: str
    ) -> ChainRecord | None: ...

    async def get_question_data(self, on_chain_id: str) -> ChainRecord | None: ...

    async def get_vote_data(
        self, question_on_chain_id: str, wallet_address: str
    ) -> ChainRecord | None: ...


class SolanaConnection(Protocol):
    async def get_account_info(self, address: str) -> Any | None: ...


class SolanaClient(Protocol):
    def get_connection(self, network: str | None = None) -> SolanaConnection: ...


@runtime_checkable
class BlockchainService(Protocol):
    """Entry point handed to :class:`~quorum.sync.reconciliation.StateReconciler`."""

    def get_contract_manager(self) -> ContractManager: ...

    def get_solana_client(self) -> SolanaClient: ...
