[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "caterpillar-clay"
version = "0.1.0"
description = "Storefront core for a small ceramics shop: configuration, SQLite data models, HTTP-mapped errors and request guards."
requires-python = ">=3.10"
dependencies = []
keywords = ["shop", "storefront", "ecommerce", "orders", "products", "newsletter", "sqlite"]
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
    "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
    "Topic :: Office/Business",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["caterpillar_clay"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
