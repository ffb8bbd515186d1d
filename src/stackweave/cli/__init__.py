"""
Stackweave command-line interface.
"""
