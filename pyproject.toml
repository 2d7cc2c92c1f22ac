[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "clevofan"
version = "0.1.0"
description = "Fan and CPU monitoring daemon and temperature-driven fan controller for Clevo laptops"
requires-python = ">=3.10"
keywords = ["clevo", "fan", "embedded-controller", "pid", "thermal", "laptop", "rapl"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Environment :: No Input/Output (Daemon)",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Hardware",
]
dependencies = [
    "psutil",
    "python-dotenv",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
clevofan-controller = "clevofan.client_app:main"
clevofan-controllerd = "clevofan.daemon_app:main"

[tool.hatch.build.targets.wheel]
packages = ["clevofan"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
