"""Core configuration, keys, errors and dependencies"""
