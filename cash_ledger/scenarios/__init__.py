"""Scenarios for building realistic demo ledgers."""

from cash_ledger.scenarios.demo_portfolio import DemoPortfolioScenario

__all__ = ["DemoPortfolioScenario"]
