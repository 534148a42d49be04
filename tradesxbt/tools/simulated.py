"""
Simulated DEX feed connections.

Connections are bookkeeping only: no sockets are opened and the live data
returned is synthesized and marked as simulated.
"""
import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional


logger = logging.getLogger(__name__)

DEX_ENDPOINTS = {
    "uniswap": "wss://api.thegraph.com/subgraphs/name/uniswap/uniswap-v3",
    "pancakeswap": "wss://api.thegraph.com/subgraphs/name/pancakeswap/exchange-v3",
    "sushiswap": "wss://api.thegraph.com/subgraphs/name/sushi-v3/v3-ethereum",
    "solana-dex": "wss://streaming.bitquery.io/eap",
    "bitquery": "wss://streaming.bitquery.io/eap",
}

SIMULATED_NOTE = "This is simulated data. No real exchange connection is made."


@dataclass(frozen=True)
class SimulatedConnection:
    connection_id: str
    exchange: str
    token_address: str
    chain_id: str
    endpoint: str
    opened_at: float


class SimulatedConnectionManager:
    """
    Tracks simulated feed connections for the lifetime of the application.

    Args:
        rng: Random source for synthesized data
        clock: Returns the current time in seconds
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._rng = rng or random.Random()
        self._clock = clock
        self._connections: dict[str, SimulatedConnection] = {}

    @property
    def supported_exchanges(self) -> list[str]:
        return list(DEX_ENDPOINTS)

    @property
    def connections(self) -> list[SimulatedConnection]:
        return list(self._connections.values())

    def connect(self, exchange: str, token_address: str, chain_id: str = "1") -> dict:
        """
        Register a simulated connection.

        Returns:
            Payload with the connection id, or an error listing supported exchanges
        """
        key = exchange.lower()
        endpoint = DEX_ENDPOINTS.get(key)
        if endpoint is None:
            return {
                "error": f"Exchange {exchange} not supported",
                "supported": self.supported_exchanges,
            }

        now = self._clock()
        connection_id = f"{key}_{token_address}_{int(now * 1000)}"
        self._connections[connection_id] = SimulatedConnection(
            connection_id=connection_id,
            exchange=key,
            token_address=token_address,
            chain_id=chain_id,
            endpoint=endpoint,
            opened_at=now,
        )
        logger.debug(f"Opened simulated connection {connection_id}")
        return {
            "success": True,
            "connectionId": connection_id,
            "message": f"Connected to {exchange} feed for token {token_address} on chain {chain_id}",
            "endpoint": endpoint,
            "simulated": True,
            "note": SIMULATED_NOTE,
        }

    def live_data(self, connection_id: str, data_type: str = "price") -> dict:
        """Synthesize a market snapshot for an open connection."""
        if connection_id not in self._connections:
            return {"error": f"No active connection: {connection_id}"}

        rand = self._rng.random

        def trade(age: str) -> dict:
            return {
                "type": "buy" if rand() > 0.5 else "sell",
                "amount": f"{100 + rand() * 1000:.2f}",
                "price": f"${0.1 + rand():.6f}",
                "time": age,
            }

        return {
            "connectionId": connection_id,
            "dataType": data_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "tokenData": {
                "price": f"${0.1 + rand():.6f}",
                "priceChange": f"{rand() * 10 - 5:.2f}%",
                "liquidity": f"${10000 + rand() * 50000:.2f}",
                "volume24h": f"${5000 + rand() * 20000:.2f}",
                "marketCap": f"${100000 + rand() * 500000:.2f}",
                "holders": int(100 + rand() * 1000),
            },
            "recentTrades": [trade("30 seconds ago"), trade("2 minutes ago")],
            "simulated": True,
            "note": SIMULATED_NOTE,
        }

    def disconnect(self, connection_id: str) -> dict:
        """Forget a connection."""
        removed = self._connections.pop(connection_id, None)
        if removed is None:
            return {"success": False, "message": f"No active connection: {connection_id}", "simulated": True}
        return {
            "success": True,
            "message": f"Disconnected feed connection: {connection_id}",
            "simulated": True,
        }

    def close_all(self) -> None:
        """Drop every connection (application shutdown)."""
        if self._connections:
            logger.debug(f"Closing {len(self._connections)} simulated connection(s)")
        self._connections.clear()
