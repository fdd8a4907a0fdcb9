"""News digest curation pipeline.

Clusters incoming articles into cross-source stories, scores them against
per-user preferences, selects digest content and gates breaking-news alerts.
"""

__version__ = "0.1.0"
