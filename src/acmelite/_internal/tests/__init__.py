"""acmelite tests"""
