from setuptools import setup, find_packages

setup(
    name="learning-engine",
    version="0.1.0",
    packages=find_packages(exclude=["learning_engine.tests"]),
    install_requires=[
        "pydantic>=2.0.0",
        "sqlalchemy>=2.0.0",
        "PyYAML>=6.0",
        "python-dotenv>=0.19.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
        "postgres": [
            "psycopg2-binary>=2.9.0",
        ],
    },
    python_requires=">=3.8",
)
