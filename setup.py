from setuptools import setup, find_packages

setup(
    name="position-copy-engine",
    version="1.0.0",
    author="Position Copy Engine Team",
    description="Replicates a source portfolio's position ratios onto user capital",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "pydantic>=2.11",
        "PyYAML>=6.0",
        "aiohttp>=3.9",
        "fastapi>=0.110",
        "uvicorn>=0.29",
        "apscheduler>=3.10,<4",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "httpx>=0.27",
        ],
    },
    entry_points={
        "console_scripts": [
            "copy-service=copy_service.main:main",
        ],
    },
    python_requires=">=3.11",
)
