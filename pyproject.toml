[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "yuinfra"
version = "0.1.0"
description = "Blockchain infrastructure building blocks: Merkle Patricia trie, Merkle tree, RLP, key-value and SQL storage, peer messaging helpers"
requires-python = ">=3.10"
keywords = ["blockchain", "merkle", "patricia-trie", "rlp", "key-value", "storage"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Libraries",
]
dependencies = [
    "pycryptodome",
    "lmdb",
    "sqlalchemy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["yuinfra"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
