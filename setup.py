"""Setup configuration for the talentrank package."""

from setuptools import find_packages, setup

setup(
    name="talentrank",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "fastapi>=0.110.0",
        "uvicorn>=0.29.0",
        "pydantic>=2.6.4",
        "pydantic-settings>=2.0",
        "numpy>=1.24",
        "python-dotenv>=1.0.0",
        "ollama>=0.1.7",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "httpx>=0.27",
        ],
    },
    python_requires=">=3.9",
    author="talentrank Team",
    description="Hybrid lexical, semantic and rule-based matching of candidates and job postings",
)
