"""Browser automation server, task executor and HTTP client"""
