"""Project tasks domain"""
