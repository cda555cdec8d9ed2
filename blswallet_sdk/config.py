"""
Network configuration for the BLS Wallet SDK.
"""
import json
import os
import importlib.resources
from typing import Any, Dict, Optional


class NetworkConfig:
    """Networks shipped in the packaged networks.json"""

    _networks_cache: Optional[Dict[str, Dict[str, Any]]] = None

    @classmethod
    def load_networks(cls) -> Dict[str, Dict[str, Any]]:
        """Load (once) and return every configured network"""
        if cls._networks_cache is None:
            resource = importlib.resources.files("blswallet_sdk").joinpath("networks.json")
            with resource.open("r") as f:
                cls._networks_cache = json.load(f)
        return cls._networks_cache

    @classmethod
    def get_network(cls, network: str) -> Dict[str, Any]:
        """
        Get one network's configuration.

        Raises:
            ValueError: If the network is not configured
        """
        networks = cls.load_networks()
        if network not in networks:
            available = ", ".join(sorted(networks))
            raise ValueError(f"Unknown network '{network}'. Available networks: {available}")
        return networks[network]

    @classmethod
    def get_rpc_url(cls, network: str, override: Optional[str] = None) -> str:
        """
        RPC URL for a network.

        Resolution order: ``override``, then the ``<NETWORK>_RPC_URL``
        environment variable (dashes become underscores), then the file.
        """
        if override:
            return override
        env_var = f"{network.upper().replace('-', '_')}_RPC_URL"
        if os.environ.get(env_var):
            return os.environ[env_var]
        return cls.get_network(network)["rpc"]

    @classmethod
    def get_chain_id(cls, network: str) -> int:
        return int(cls.get_network(network)["chainId"])

    @classmethod
    def get_gateway_address(cls, network: str) -> str:
        """Verification gateway address (target of wallet creation payloads)"""
        return cls.get_network(network)["verificationGateway"]

    @classmethod
    def get_expander_address(cls, network: str) -> str:
        return cls.get_network(network)["blsExpander"]
