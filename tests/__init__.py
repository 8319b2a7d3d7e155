"""
Test suite for the feature toolkit.

This package contains all tests organized by component:
- test_algorithms/: Tests for scalers, PCA/MDS, clustering, search, queries and statistics
- test_utils/: Tests for logging helpers
"""
