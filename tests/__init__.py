"""
Tests package - Test suite for the SFTPGo operator.

Contains:
- unit/: Unit tests for individual components
"""
