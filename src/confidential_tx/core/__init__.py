"""core module init"""
