from setuptools import setup, find_packages

setup(
    name="portfolio-monitor",
    version="1.0.0",
    author="Portfolio Monitor Team",
    description="Background engine that watches an OKX spot account and sends Telegram notifications",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    package_data={
        "portfolio_monitor": ["py.typed"],
    },
    install_requires=[
        "pydantic==2.11.7",
        "aiohttp==3.12.15",
        "PyYAML==6.0.2",
        "APScheduler==3.11.0",
        "redis==5.2.1",
        "dependency-injector==4.46.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "fakeredis[lua]>=2.26",
        ],
    },
    entry_points={
        "console_scripts": [
            "portfolio-monitor=portfolio_monitor.main:run",
        ],
    },
    python_requires=">=3.11",
)
