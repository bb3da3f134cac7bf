"""Contracts domain"""
