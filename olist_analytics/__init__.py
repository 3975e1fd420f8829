"""
Olist Analytics Layer

Canonicalization and fact-assembly pipeline for the Olist e-commerce snapshot,
with RFM scoring and rule-based customer segmentation.
"""

__version__ = "1.0.0"
