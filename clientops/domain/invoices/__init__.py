"""Invoices domain"""
