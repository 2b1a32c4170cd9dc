import io
import sys
import zipfile
from pathlib import Path
from typing import Dict, Generator

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from repograph.graph.graph_builder import GraphBuilder, TieBreakPolicy
from repograph.processor.extractor_registry import get_extractor
from repograph.types import FileEntry, KnowledgeGraph


SOLIDITY_TOKEN = """// SPDX-License-Identifier: MIT
pragma solidity ^0.8.0;

import "./IToken.sol";
import {Ownable} from "@openzeppelin/contracts/access/Ownable.sol";

interface IToken {
    function transfer(address to, uint256 amount) external returns (bool);
}

library MathLib {
    function add(uint256 a, uint256 b) internal pure returns (uint256) {
        return a + b;
    }
}

contract Token is IToken, Ownable {
    struct Account { uint256 balance; }
    enum State { Active, Paused }
    event Transfer(address indexed from, address indexed to, uint256 value);
    error Insufficient(uint256 needed);

    mapping(address => Account) private accounts;

    modifier onlyActive() {
        require(isActive(), "paused");
        _;
    }

    constructor() {
        accounts[msg.sender].balance = 100;
    }

    function transfer(address to, uint256 amount) external onlyActive returns (bool) {
        uint256 total = MathLib.add(amount, 0);
        _move(msg.sender, to, total);
        emit Transfer(msg.sender, to, amount);
        return true;
    }

    function _move(address from, address to, uint256 amount) internal {
        accounts[from].balance -= amount;
    }

    function isActive() public view returns (bool) {
        return true;
    }

    receive() external payable {}
}
"""

JAVASCRIPT_APP = """
function helloWorld() {
    console.log("Hello, World!");
    return "Hello";
}

class TestClass {
    constructor(name) {
        this.name = name;
    }

    greet() {
        return `Hello, ${this.name}!`;
    }

    calculate(x, y) {
        return x + y;
    }
}

function main() {
    const test = new TestClass("Test");
    console.log(test.greet());
    helloWorld();
}

main();
"""

A_SOL = """contract A {
    function g() public {}
}
"""

B_SOL = """import "./a.sol";

contract B is A {
    function f() public { g(); }
}
"""


def make_zip(files: Dict[str, str]) -> bytes:
    """Zip ``files`` in memory."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def build_graph(files: Dict[str, str], policy: TieBreakPolicy = TieBreakPolicy.SAME_FILE_FIRST) -> KnowledgeGraph:
    """Extract and build ``files`` without touching the store."""
    results = []
    for path in sorted(files):
        extractor = get_extractor(path)
        results.append(extractor.extract(path, files[path]))
    return GraphBuilder(tie_break=policy).build(results, files)


@pytest.fixture
def sample_solidity() -> str:
    return SOLIDITY_TOKEN


@pytest.fixture
def sample_javascript() -> str:
    return JAVASCRIPT_APP


@pytest.fixture
def inheritance_files() -> Dict[str, str]:
    """Two contracts where B extends A and B.f calls A.g."""
    return {"a.sol": A_SOL, "b.sol": B_SOL}


@pytest.fixture
def sample_archive(inheritance_files) -> bytes:
    """Zipped archive with a top-level folder, as produced by code hosts."""
    files = {f"project-main/{path}": content for path, content in inheritance_files.items()}
    files["project-main/app.js"] = JAVASCRIPT_APP
    files["project-main/README.md"] = "# Project\n"
    files["project-main/node_modules/dep/index.js"] = "module.exports = {};\n"
    return make_zip(files)


@pytest.fixture
def file_entries(inheritance_files):
    return [FileEntry(path=path, content=content) for path, content in sorted(inheritance_files.items())]


@pytest.fixture
def kuzu_store() -> Generator:
    """Fresh in-memory Kuzu store."""
    pytest.importorskip("kuzu")
    from repograph.graph.kuzu_store import KuzuGraphStore

    store = KuzuGraphStore(":memory:")
    yield store
    store.close()
