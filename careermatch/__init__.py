"""
CareerMatch - semantic job matching for candidate profiles.

A small service core that:
- Generates and caches embeddings for profiles and job postings
- Scores one profile against every job using cosine similarity
- Serves a ranked, cached list of jobs per profile
"""

__version__ = "0.1.0"
