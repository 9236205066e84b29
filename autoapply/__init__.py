"""Scheduled job-application pipeline for HeadHunter postings."""

__version__ = "0.1.0"
