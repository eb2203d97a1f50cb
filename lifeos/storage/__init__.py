"""Storage - in-process caching"""
