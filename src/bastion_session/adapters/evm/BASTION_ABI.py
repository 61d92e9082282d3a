"""
Bastion Factory / Account ABI Module

ABI fragments for the two contracts the protocol consults:

* the factory: ``impl``, ``getDigest``, ``getBastionAddress`` and ``checkSig``
* the session account: ``owner``, ``operator`` and ``changeOperator``

The ``Approval`` tuple is shared by ``getDigest`` and ``checkSig``; its
``operator`` component is ``bytes`` (the raw 20-byte operator address), not
``address``.
"""

from typing import Dict, Any, List


def _approval_tuple(name: str = "approval") -> Dict[str, Any]:
    return {
        "name": name,
        "type": "tuple",
        "components": [
            {"name": "operator", "type": "bytes"},
            {"name": "token", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "domain", "type": "bytes32"},
            {"name": "salt", "type": "bytes32"},
        ],
    }


def _signature_inputs() -> List[Dict[str, Any]]:
    return [
        {"name": "chainId", "type": "uint256"},
        {"name": "v", "type": "uint8"},
        {"name": "r", "type": "bytes32"},
        {"name": "s", "type": "bytes32"},
    ]


def get_factory_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the factory contract.

    Returns:
        List[Dict[str, Any]]: ``impl``, ``getDigest``, ``getBastionAddress``
        and ``checkSig`` entries.
    """
    return [
        {
            "name": "impl",
            "type": "function",
            "stateMutability": "view",
            "inputs": [],
            "outputs": [{"name": "", "type": "address"}],
        },
        {
            "name": "getDigest",
            "type": "function",
            "stateMutability": "view",
            "inputs": [_approval_tuple()],
            "outputs": [{"name": "", "type": "bytes32"}],
        },
        {
            "name": "getBastionAddress",
            "type": "function",
            "stateMutability": "view",
            "inputs": _signature_inputs(),
            "outputs": [{"name": "", "type": "address"}],
        },
        {
            "name": "checkSig",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [_approval_tuple()] + _signature_inputs(),
            "outputs": [],
        },
    ]


def get_session_account_abi() -> List[Dict[str, Any]]:
    """Get ABI for the delegated session account (``owner``, ``operator``, ``changeOperator``)."""
    return [
        {
            "name": "owner",
            "type": "function",
            "stateMutability": "view",
            "inputs": [],
            "outputs": [{"name": "", "type": "address"}],
        },
        {
            "name": "operator",
            "type": "function",
            "stateMutability": "view",
            "inputs": [],
            "outputs": [{"name": "", "type": "bytes"}],
        },
        {
            "name": "changeOperator",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [{"name": "operator", "type": "bytes"}],
            "outputs": [],
        },
    ]
