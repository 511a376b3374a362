from setuptools import setup, find_packages

setup(
    name="ethicsgate",
    version="0.1.0",
    description="EthicsGate ethics-review proposal lifecycle and access-control core with CLI/API",
    author="EthicsGate",
    python_requires=">=3.9",
    packages=find_packages(include=["ethicsgate", "ethicsgate.*"]),
    install_requires=["pyyaml>=6.0.0"],
    extras_require={
        "api": ["fastapi>=0.110.0", "uvicorn>=0.23.0"],
        "dev": ["pytest>=7.4.0", "fastapi>=0.110.0", "uvicorn>=0.23.0", "httpx>=0.25.0"],
    },
    entry_points={"console_scripts": ["ethicsgate=ethicsgate.cli:main"]},
    keywords=["ethics", "irb", "review", "proposals", "access-control", "cli"],
    license="Apache-2.0",
)
