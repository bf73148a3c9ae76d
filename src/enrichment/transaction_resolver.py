import asyncio
from logging import Logger
from typing import Optional
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.core import RPCException
from solana.exceptions import SolanaRpcException
from solders.signature import Signature
from core.types import AlertMessage, BalanceDelta, TransactionDetail
from alerts.alert_dispatcher import AlertDispatcher

class TransactionNotIndexed(Exception):
    """Raised when the RPC node does not know the transaction yet"""
    pass

class TransactionResolver:
    def __init__(self,
                 client: AsyncClient,
                 alert_dispatcher: AlertDispatcher,
                 logger: Logger,
                 threshold_sol: float = 0.1,
                 lookup_attempts: int = 3,
                 retry_delay: float = 0.5,
                 explorer_url: str = "https://solscan.io/tx/"):
        self.client = client
        self.alert_dispatcher = alert_dispatcher
        self.logger = logger
        self.threshold_sol = threshold_sol
        self.lookup_attempts = max(1, lookup_attempts)
        self.retry_delay = retry_delay
        self.explorer_url = explorer_url

        self.resolved = 0
        self.misses = 0
        self.alerts_raised = 0

    async def _lookup(self, signature: Signature) -> TransactionDetail:
        """Single getTransaction call"""
        tx_details = await self.client.get_transaction(
            signature,
            encoding="jsonParsed",
            commitment=Confirmed,
            max_supported_transaction_version=0
        )
        if tx_details.value is None:
            raise TransactionNotIndexed(str(signature))

        meta = tx_details.value.transaction.meta
        if meta is None:
            return TransactionDetail(str(signature), (), ())

        return TransactionDetail(
            signature=str(signature),
            pre_balances=tuple(meta.pre_balances or ()),
            post_balances=tuple(meta.post_balances or ()),
        )

    async def fetch_detail(self, signature_str: str) -> Optional[TransactionDetail]:
        """
        Fetch the balances of a transaction.

        Fresh transactions are often not queryable yet, so a not-found answer is
        retried a few times with a fixed delay before it counts as a miss.
        Transport errors are not retried.

        Returns:
            Optional[TransactionDetail]: None on miss, bad signature or RPC failure
        """
        try:
            signature = Signature.from_string(signature_str)
        except ValueError as e:
            self.logger.debug(f"Invalid signature {signature_str}: {str(e)}")
            return None

        for attempt in range(1, self.lookup_attempts + 1):
            try:
                return await self._lookup(signature)
            except TransactionNotIndexed:
                if attempt < self.lookup_attempts:
                    await asyncio.sleep(self.retry_delay)
            except (SolanaRpcException, RPCException) as e:
                self.logger.debug(f"RPC error fetching {signature_str}: {str(e)}")
                return None

        self.misses += 1
        self.logger.debug(f"Transaction {signature_str} not found after {self.lookup_attempts} attempts")
        return None

    async def resolve(self, signature_str: str) -> Optional[BalanceDelta]:
        detail = await self.fetch_detail(signature_str)
        if detail is None:
            return None

        delta = BalanceDelta.from_detail(detail)
        if delta is not None:
            self.resolved += 1
        return delta

    def qualifies(self, delta: BalanceDelta) -> bool:
        return delta.amount > self.threshold_sol

    async def process(self, signature_str: str):
        """Resolve one signature and alert if the amount is over the threshold"""
        delta = await self.resolve(signature_str)
        if delta is None or not self.qualifies(delta):
            return

        message = AlertMessage.from_delta(delta, self.explorer_url)
        self.alerts_raised += 1
        await self.alert_dispatcher.deliver(message)
