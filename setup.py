import setuptools
from setuptools import find_packages

with open("readme.md", "r") as fh:
    long_description = fh.read()


vars2find = ["__author__", "__version__"]
vars2readme = {}
with open("./search_mirror/__init__.py") as f:
    for line in f.readlines():
        for v in vars2find:
            if line.startswith(v):
                line = line.replace(" ", "").replace('"', "").replace("'", "").strip()
                vars2readme[v] = line.split("=")[1]

core_deps = [
    "httpx>=0.24",
    "tenacity",
    "pydantic>=2.0",
]

setuptools.setup(
    name="search-mirror",
    version=vars2readme["__version__"],
    author=vars2readme["__author__"],
    description="Back up a search index to day-windowed JSON files and restore it into another index",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["search_mirror", "search_mirror.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.9",
    install_requires=core_deps,
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
    entry_points={
        "console_scripts": [
            "search-mirror=search_mirror.cli:main",
        ],
    },
)
