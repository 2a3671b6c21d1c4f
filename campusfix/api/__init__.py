"""
Campus Fix - REST API Module
"""
