from setuptools import find_packages, setup

setup(
    name="smartling-bulk-service",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["app", "bootloader"],
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "uvicorn>=0.29",
        "pydantic>=2.5",
        "aiohttp>=3.9",
        "python-dotenv>=1.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "httpx>=0.27",
        ],
    },
    include_package_data=True,
    # Installed under sys.prefix; shared.config looks there after the source tree
    data_files=[("config", ["config/pipeline.yaml"])],
    description="Asynchronous bulk translation jobs over the Smartling API",
)
