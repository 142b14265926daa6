"""
Demo application for pasty.
"""
