"""Data retention domain"""
