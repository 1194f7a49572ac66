"""Reporting package."""

from billing_ledger.reports.summary import build_dashboard_summary

__all__ = ["build_dashboard_summary"]
