"""Test suite for the fleet health core."""
