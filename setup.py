from setuptools import setup, find_packages

setup(
    name="tog-lang",
    version="0.3.0",
    description="TOG — a small, optionally typed scripting language and tree-walking interpreter",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pyyaml>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "hypothesis>=6.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "tog=tog.cli:main",
        ],
    },
)
