"""Medistream: change detection and notifications for the DrugDealer, Unmet Needs and Pharma Tactics datasets."""

__version__ = "0.1.0"
