"""
Web dashboard for collected repositories.
"""
