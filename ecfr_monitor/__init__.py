"""
eCFR Title Word Counter

A pipeline for retrieving every title of the Electronic Code of Federal
Regulations, counting the words of each substantive revision and publishing
a per-title summary report.
"""

__version__ = "1.0.0"
