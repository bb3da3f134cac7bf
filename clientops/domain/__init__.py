"""Domain services run by the scheduler"""
