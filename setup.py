from setuptools import setup, find_packages

setup(
    name="starknet-devkit",
    version="0.1.0",
    description="Deploy, invoke and call StarkNet contracts with ABI-driven argument adaptation",
    packages=find_packages(),
    install_requires=[
        "aiohttp>=3.8.0",
        "pyyaml>=6.0",
        "jsonschema>=4.0.0",
        "eth-utils>=2.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "starknet-devkit=starknet_devkit.main:main",
        ],
    },
)
