from setuptools import setup, find_packages

setup(
    name="qakit",
    version="0.1.0",
    description="Rede de seguranca para testes de browser - guard de recursos, saude de pagina, evidencias e diagnostico",
    author="Marcos Remar",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "httpx>=0.25.0",
        "python-dotenv>=1.0.0",
        "structlog>=23.0.0",
        "playwright>=1.40.0",
        "psutil>=5.9.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "qakit=qakit.cli:main",
        ],
    },
)
