from pathlib import PurePosixPath
from typing import Dict, Optional

from .base_extractor import BaseExtractor
from .javascript_extractor import JavaScriptExtractor
from .solidity_extractor import SolidityExtractor

_SOLIDITY = SolidityExtractor()
_JAVASCRIPT = JavaScriptExtractor("javascript")
_TYPESCRIPT = JavaScriptExtractor("typescript")

EXTENSION_EXTRACTORS: Dict[str, BaseExtractor] = {
    ".sol": _SOLIDITY,
    ".js": _JAVASCRIPT,
    ".jsx": _JAVASCRIPT,
    ".mjs": _JAVASCRIPT,
    ".cjs": _JAVASCRIPT,
    ".ts": _TYPESCRIPT,
    ".tsx": _TYPESCRIPT,
    ".mts": _TYPESCRIPT,
    ".cts": _TYPESCRIPT,
}

# Tried in order when an import path omits its extension
IMPORT_EXTENSION_CANDIDATES: Dict[str, tuple] = {
    "solidity": (".sol",),
    "javascript": (".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx"),
    "typescript": (".ts", ".tsx", ".d.ts", ".js", ".jsx", ".mts"),
}


def get_extractor(file_path: str) -> Optional[BaseExtractor]:
    """Extractor for ``file_path``'s extension, or None (File node only)."""
    return EXTENSION_EXTRACTORS.get(PurePosixPath(file_path).suffix.lower())


def get_language(file_path: str) -> Optional[str]:
    extractor = get_extractor(file_path)
    return extractor.language if extractor else None


def supported_extensions() -> list:
    return sorted(EXTENSION_EXTRACTORS)
