"""
Test suite for pairgallery.

This module contains all test cases for the application:
- Unit tests for the ledger, the viewer controller, models and services
- Integration tests for multi-session scenarios on the in-memory gateway
"""
