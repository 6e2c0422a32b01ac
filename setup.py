from setuptools import setup, find_packages

setup(
    name="squad-analytics",
    version="0.1.0",
    description="KPI, kinetics and projection engines for team step challenges",
    packages=find_packages(include=["squad_analytics", "squad_analytics.*"]),
    install_requires=[
        "numpy>=1.22.4",
        "pandas>=1.5.3",
        "pytz>=2022.7",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "squad-analytics=squad_analytics.main:main",
        ],
    },
)
