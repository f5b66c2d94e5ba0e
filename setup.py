from setuptools import setup, find_packages

setup(
    name="psc-lang",
    version="0.5.0",
    description="psc — Compiles PureScript-style modules to JavaScript",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "z3-solver>=4.12.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "hypothesis>=6.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "psc=psc.cli:main",
        ],
    },
)
