"""Test suite for the MIPS scoring engine."""
