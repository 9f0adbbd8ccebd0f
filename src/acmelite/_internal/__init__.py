"""acmelite's internal implementation"""
