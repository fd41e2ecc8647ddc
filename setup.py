# setup.py
from setuptools import setup, find_packages

setup(
    name="site_ingest",
    version="0.1.0",
    description="Crawl and submission pipeline feeding a search index",
    packages=find_packages(exclude=("tests", "tests.*")),
    package_data={"site_ingest.report": ["templates/*.j2"]},
    install_requires=[
        "aiohttp>=3.9",
        "beautifulsoup4>=4.12",
        "pydantic>=2.5",
        "PyYAML>=6.0",
        "click>=8.1",
        "Jinja2>=3.1",
    ],
    extras_require={
        "test": ["pytest>=8", "pytest-asyncio>=0.23"],
    },
    entry_points={"console_scripts": ["site-ingest=site_ingest.cli:cli"]},
    python_requires=">=3.11",
)
