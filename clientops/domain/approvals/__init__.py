"""Approval workflow domain"""
