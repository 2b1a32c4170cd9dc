"""
Per-language identifiers that look like calls but are not.

Matched as ``identifier(`` by the call scanner, these are control flow,
declarations or built-ins. Bump KEYWORDS_VERSION whenever a set changes so
graphs built with different lists can be told apart.
"""
from typing import Dict, FrozenSet

KEYWORDS_VERSION = "1"

SOLIDITY_CALL_EXCLUSIONS: FrozenSet[str] = frozenset({
    "if", "for", "while", "do", "return", "returns", "new", "delete",
    "require", "assert", "revert", "emit", "unchecked", "try", "catch",
    "mapping", "payable", "constructor", "modifier", "function", "event",
    "error", "fallback", "receive", "view", "pure", "memory", "storage",
    "calldata", "override", "virtual", "abi", "keccak256", "sha256",
    "ripemd160", "ecrecover", "addmod", "mulmod", "type", "address",
    "bool", "string", "bytes", "uint", "int", "uint8", "uint16", "uint32",
    "uint64", "uint128", "uint256", "int8", "int16", "int32", "int64",
    "int128", "int256", "bytes1", "bytes4", "bytes32",
})

JAVASCRIPT_CALL_EXCLUSIONS: FrozenSet[str] = frozenset({
    "if", "for", "while", "do", "switch", "catch", "return", "typeof",
    "instanceof", "new", "function", "super", "constructor", "await",
    "yield", "delete", "void", "with", "else", "try", "import", "require",
    "class", "extends", "in", "of", "case", "throw", "async",
})

CALL_EXCLUSIONS: Dict[str, FrozenSet[str]] = {
    "solidity": SOLIDITY_CALL_EXCLUSIONS,
    "javascript": JAVASCRIPT_CALL_EXCLUSIONS,
    "typescript": JAVASCRIPT_CALL_EXCLUSIONS,
}

# Words a class-body method pattern must never treat as a method name
JAVASCRIPT_NON_METHODS: FrozenSet[str] = frozenset({
    "if", "for", "while", "switch", "catch", "return", "function", "with",
    "do", "else", "try", "super", "new", "typeof", "await", "yield",
})


def get_call_exclusions(language: str) -> FrozenSet[str]:
    """Exclusion set for ``language``; empty for unknown languages."""
    return CALL_EXCLUSIONS.get(language, frozenset())
