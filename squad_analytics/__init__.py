"""Squad analytics: KPIs, pace kinetics and end-date projections for team step challenges."""

__version__ = "0.1.0"
