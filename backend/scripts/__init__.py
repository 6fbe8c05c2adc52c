"""
Backend Scripts Module

Available scripts:
    - seed_data.py: Creates the default withdrawal policy for every module

Usage:
    python -m scripts.seed_data
"""
