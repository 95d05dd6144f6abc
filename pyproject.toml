[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "chartrender"
version = "0.1.0"
description = "HTTP service that renders ECharts, Chart.js and Konva.js configurations to PNG, JPEG or PDF through pooled connections to a headless browser"
requires-python = ">=3.10"
keywords = ["charts", "rendering", "headless-browser", "devtools", "echarts", "chartjs", "konva", "screenshot", "pdf"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Framework :: FastAPI",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: Multimedia :: Graphics",
]
dependencies = [
    "fastapi",
    "pydantic>=2",
    "python-dotenv",
    "uvicorn",
    "websocket-client",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "httpx",
]

[project.scripts]
chartrender = "chartrender.main:main"

[tool.hatch.build.targets.wheel]
packages = ["chartrender"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
