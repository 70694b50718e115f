from setuptools import setup, find_packages

setup(
    name="examforge-backend",
    version="0.1.0",
    packages=find_packages(exclude=["backend.tests", "backend.tests.*"]),
    install_requires=[
        "fastapi>=0.93.0,<0.120.0",
        "uvicorn>=0.15.0",
        "pydantic>=1.8.0,<2.0.0",
        "sqlalchemy>=1.4.0,<2.0.0",
        "aiosqlite>=0.17.0",
        "alembic>=1.7.0",
        "python-dotenv>=0.19.0",
    ],
    extras_require={
        "postgres": [
            "asyncpg>=0.25.0",
        ],
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.20.0",
            "httpx>=0.23.0",
        ],
    },
    python_requires=">=3.8",
)
