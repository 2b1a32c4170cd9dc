import hashlib
from typing import Optional, Union

from ..types import NodeLabel

# ASCII unit separator; cannot appear in paths or identifiers
_SEPARATOR = "\x1f"


def generate_id(label: Union[NodeLabel, str], file_path: str, name: str = "",
                disambiguator: Optional[str] = None) -> str:
    """
    Deterministic node id for a structural element.

    The id is a pure function of (label, file_path, name, disambiguator), so
    re-extracting identical content reproduces identical ids. File ids depend
    on the path alone.
    """
    label_value = label.value if isinstance(label, NodeLabel) else str(label)
    if label_value == NodeLabel.FILE.value:
        parts = [label_value, file_path]
    else:
        parts = [label_value, file_path, name]
        if disambiguator:
            parts.append(disambiguator)
    digest = hashlib.md5(_SEPARATOR.join(parts).encode("utf-8")).hexdigest()
    return f"{label_value}:{digest}"


def generate_file_id(file_path: str) -> str:
    """Id of the File node for ``file_path``."""
    return generate_id(NodeLabel.FILE, file_path)
