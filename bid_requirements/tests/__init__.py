"""Test suite for bid_requirements."""
