"""
HoopSense shot tracking core
"""
