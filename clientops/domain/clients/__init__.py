"""Clients domain"""
