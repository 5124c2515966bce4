[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tokenledger"
version = "0.0.1"
description = "A token ledger with assets, balances, trade orders and cross-chain transfers"
requires-python = ">=3.10"
keywords = ["ledger", "token", "assets", "order-book", "ed25519", "cross-chain"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["tokenledger"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
