"""
Smart Audio Core Module

This module provides core utilities including path management,
runtime settings, and logging for the Smart Audio monitor.
"""
