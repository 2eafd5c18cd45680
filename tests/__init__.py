"""
Tests package - Test suite for the injection operator.

Contains:
- unit/: Unit tests for individual components, no cluster required
"""
