"""Methodloom - methodology playbook enforcement for modeling documents."""

__version__ = "0.4.0"
