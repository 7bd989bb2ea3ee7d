"""
Chalkboard billiard hall backend
"""
