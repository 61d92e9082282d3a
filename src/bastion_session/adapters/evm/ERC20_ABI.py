"""
ERC20 Smart Contract ABI Module

Minimal ABI fragments for the ERC-20 calls the session client makes:
allowance reads, approve writes and the ``mint`` entry point of the test
token.

Usage:
    from .ERC20_ABI import get_allowance_abi, get_approve_abi

    contract = web3.eth.contract(address=token_address, abi=get_approve_abi())
"""

from typing import Dict, Any, List


def get_allowance_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ERC20 `allowance(owner, spender)`.

    Returns:
        List[Dict[str, Any]]: ABI for ERC20 `allowance` function.
    """
    return [
        {
            "name": "allowance",
            "type": "function",
            "stateMutability": "view",
            "inputs": [
                {"name": "owner", "type": "address"},
                {"name": "spender", "type": "address"},
            ],
            "outputs": [{"name": "", "type": "uint256"}],
        }
    ]


def get_approve_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ERC20 `approve(spender, amount)`.

    Returns:
        List[Dict[str, Any]]: ABI for ERC20 `approve` function.
    """
    return [
        {
            "name": "approve",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "spender", "type": "address"},
                {"name": "amount", "type": "uint256"},
            ],
            "outputs": [{"name": "", "type": "bool"}],
        }
    ]


def get_mint_abi() -> List[Dict[str, Any]]:
    """Get ABI for the mock token's `mint(to, amount)`."""
    return [
        {
            "name": "mint",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "to", "type": "address"},
                {"name": "amount", "type": "uint256"},
            ],
            "outputs": [],
        }
    ]
